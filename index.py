import os
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from routes.my_tools import router as my_tools_router
from routes.billing import router as billing_router

# Load environment variables
load_dotenv()

# Configure logging
log_handlers = [logging.StreamHandler()]
if os.getenv("LOG_FILE"):
    log_handlers.append(logging.FileHandler(os.getenv("LOG_FILE")))

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=log_handlers
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Household Tools Backend",
    description="Subscription billing and account views for household management tools",
    version="1.0.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(my_tools_router)
app.include_router(billing_router)


@app.get("/health")
async def health_check():
    """Liveness check."""
    return {"status": "healthy", "service": "household-tools-backend"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
