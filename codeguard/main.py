"""
CodeGuard FastAPI Application — Java guideline checking service.

  POST /analyze → profile, match rules, verify violations
  POST /profile → tags, compound tags, categories and risk only
  GET  /health  → {"status": "ok", ...}
  GET  /audit   → recent audit entries
"""

from __future__ import annotations

import logging

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from codeguard.api.routes.analyze import router as analyze_router
from codeguard.api.routes.audit import router as audit_router
from codeguard.api.routes.health import router as health_router
from codeguard.config import settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("codeguard")

app = FastAPI(
    title="CodeGuard",
    description="Tag-driven Java guideline checker with LLM and AST verification",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(analyze_router)
app.include_router(audit_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = await request.body()
    logger.error(f"Validation Error. Raw body: {body.decode('utf-8', 'replace')[:500]} | Errors: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("codeguard.main:app", host=settings.host, port=settings.port)
