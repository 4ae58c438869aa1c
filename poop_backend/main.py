import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from poop_backend.config.settings import DEBUG, HOST, PORT
from poop_backend.errors import PoopError
from poop_backend.middleware.cors import setup_cors
from poop_backend.routes import poops, self_verify, users, webhooks

logging.basicConfig(
    level=logging.DEBUG if DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="POOP Backend API")

setup_cors(app)

# Mount routes
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(poops.router, prefix="/api/poops", tags=["POOPs"])
app.include_router(self_verify.router, prefix="/api/self", tags=["Self"])
app.include_router(webhooks.router, prefix="/api/webhooks", tags=["Webhooks"])


@app.exception_handler(PoopError)
async def poop_error_handler(request: Request, exc: PoopError):
    # Errors raised outside a route body, e.g. by a dependency
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.get("/health")
async def health_check():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("poop_backend.main:app", host=HOST, port=PORT, reload=DEBUG)
