from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workflow_api.config import settings
from workflow_api.routers import expressions, health, node_types, nodes, workflows
from workflow_api.domain.errors import (
    ConflictError,
    GraphRejectedError,
    NotFoundError,
    UnknownNodeTypeError,
    ValidationError,
    VersionConflictError,
)
from workflow_api.domain.registry import get_node_registry
from workflow_api.application.event_handlers import register_event_handlers

app = FastAPI(
    title="Workflow API",
    description="API for building, validating and storing browser-automation workflow graphs",
    version=settings.VERSION,
)

# Register domain event handlers on startup
@app.on_event("startup")
async def startup_event():
    # Fail fast on a broken node catalog
    get_node_registry()
    register_event_handlers()
    if settings.STORAGE_TYPE.lower() == "database":
        from workflow_api.db import init_db
        init_db()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allows all methods
    allow_headers=["*"],  # Allows all headers
)


# Domain error handlers
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UnknownNodeTypeError)
async def unknown_node_type_handler(request: Request, exc: UnknownNodeTypeError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(VersionConflictError)
async def version_conflict_handler(request: Request, exc: VersionConflictError):
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "retryable": exc.retryable,
            "expected_version": exc.expected_version,
            "current_version": exc.current_version,
        },
    )


@app.exception_handler(GraphRejectedError)
async def graph_rejected_handler(request: Request, exc: GraphRejectedError):
    return JSONResponse(
        status_code=422,
        content={
            "detail": str(exc),
            "issues": [issue.model_dump(mode="json", by_alias=True) for issue in exc.issues],
        },
    )

# Include routers
app.include_router(health.router, tags=["Health"])  # Health check endpoints first
app.include_router(workflows.router, tags=["Workflows"])
app.include_router(nodes.router, tags=["Nodes"])
app.include_router(node_types.router, tags=["Node Types"])
app.include_router(expressions.router, tags=["Expressions"])

@app.get("/")
async def root():
    return {"message": "Welcome to Workflow API. See /docs for API documentation"}
