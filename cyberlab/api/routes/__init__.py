"""API routes package — import all routers here for inclusion in the app."""

from cyberlab.api.routes.cases import router as cases_router  # noqa: F401
from cyberlab.api.routes.exhibits import router as exhibits_router  # noqa: F401
from cyberlab.api.routes.custody import router as custody_router  # noqa: F401
from cyberlab.api.routes.approvals import router as approvals_router  # noqa: F401
from cyberlab.api.routes.activity import router as activity_router  # noqa: F401
