import logging
from fastapi import FastAPI
from .database import init_db
from .routers import auth, credentials
from .config import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

@app.on_event("startup")
def on_startup():
    init_db()

app.include_router(auth.router, prefix="/auth", tags=["Authentication"])

app.include_router(credentials.router, prefix=settings.API_V1_STR, tags=["Credentials"])

@app.get("/")
def root():
    return {"message": "PassVault development backend is running"}

def serve():
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)

if __name__ == "__main__":
    serve()
