"""
Application layer for the identity bounded context.

One use case class per operation. Each use case receives its ports
through the constructor and exposes a single ``execute`` method.
"""
