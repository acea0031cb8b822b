from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from schoolhub.api import routes
from schoolhub.config import LOG_LEVEL
from schoolhub.exceptions import SchoolHubError
from schoolhub.middleware.logging_middleware import LoggingMiddleware
import logging

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="School Hub API")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)

app.add_exception_handler(SchoolHubError, routes.schoolhub_error_handler)

app.include_router(routes.router)

@app.get("/")
def root():
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the School Hub API"}
