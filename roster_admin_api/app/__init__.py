"""
Application package initializer.

The application is split into a small number of layers: ``core``
(configuration, logging, database access), ``schemas`` (pydantic
models), ``services`` (roster aggregation, querying and mutation
reflection) and ``api`` (versioned FastAPI routers).  The roster engine
in ``services`` does not depend on the web layer and can be used on its
own.

The application is created in ``main``; import ``roster_admin_api.app.main:app``
to serve it.
"""
