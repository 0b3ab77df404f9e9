from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schooladmin.api.v1.academic_years.router import router as academic_years_router
from schooladmin.api.v1.audit.router import router as audit_router
from schooladmin.api.v1.classes.router import router as classes_router
from schooladmin.api.v1.sections.router import router as sections_router
from schooladmin.api.v1.students.router import router as students_router
from schooladmin.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="School Admin Backend")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(academic_years_router)
    app.include_router(classes_router)
    app.include_router(sections_router)
    app.include_router(students_router)
    app.include_router(audit_router)

    return app


app = create_app()
