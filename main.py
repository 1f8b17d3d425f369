# FastAPI Application Redirect
# This file redirects to the actual app in the fieldops package

from fieldops.main import app

# Allows uvicorn to find the app when running from the root directory:
# uvicorn main:app --host 0.0.0.0 --port 8001
