"""
Domain layer package.

Pure business logic: entities, ports and errors. No framework imports.
"""
