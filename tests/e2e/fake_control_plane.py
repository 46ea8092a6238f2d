"""
In-memory stand-in for the control plane's HTTP API.

Implements just enough of the real API for end-to-end tests of the client,
provisioner and CLI:
- HTTP basic auth (admin/admin) on every API route
- Crumbs bound to the cookie session that requested them; a POST must
  present both the session cookie and the matching crumb header
- Job and credential creation, lookup, listing and deletion

Run with: uvicorn fake_control_plane:app --app-dir tests/e2e --port 8080
"""

import secrets
import xml.etree.ElementTree as ET

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials

USERNAME = "admin"
PASSWORD = "admin"
SESSION_COOKIE = "JSESSIONID"
CRUMB_FIELD = "Jenkins-Crumb"

app = FastAPI(title="Fake control plane")
security = HTTPBasic()


class State:
    def __init__(self):
        self.jobs: dict[str, str] = {}
        self.credentials: dict[str, str] = {}
        self.crumbs: dict[str, str] = {}  # session id -> crumb
        self.posts = 0

    def reset(self):
        self.__init__()


state = State()


def authenticate(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    valid_user = secrets.compare_digest(credentials.username, USERNAME)
    valid_password = secrets.compare_digest(credentials.password, PASSWORD)
    if not (valid_user and valid_password):
        raise HTTPException(
            status_code=401,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


def require_crumb(request: Request, user: str = Depends(authenticate)) -> str:
    """Reject a POST whose crumb does not belong to its cookie session."""
    session_id = request.cookies.get(SESSION_COOKIE)
    expected = state.crumbs.get(session_id) if session_id else None
    if expected is None or request.headers.get(CRUMB_FIELD) != expected:
        raise HTTPException(status_code=403, detail="No valid crumb was included in the request")
    state.posts += 1
    return user


@app.get("/login")
async def login():
    return {"status": "ok"}


@app.get("/api/json")
async def root_info(user: str = Depends(authenticate)):
    return {"mode": "NORMAL", "jobs": [{"name": name} for name in state.jobs]}


@app.get("/crumbIssuer/api/json")
async def crumb_issuer(request: Request, response: Response, user: str = Depends(authenticate)):
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id not in state.crumbs:
        session_id = secrets.token_hex(16)
        response.set_cookie(SESSION_COOKIE, session_id)
    crumb = secrets.token_hex(16)
    state.crumbs[session_id] = crumb
    return {"crumbRequestField": CRUMB_FIELD, "crumb": crumb}


@app.post("/createItem")
async def create_item(name: str, request: Request, user: str = Depends(require_crumb)):
    if name in state.jobs:
        raise HTTPException(status_code=400, detail=f"A job already exists with the name '{name}'")
    body = (await request.body()).decode("utf-8")
    if "<flow-definition" not in body:
        raise HTTPException(status_code=400, detail="Not a pipeline definition")
    state.jobs[name] = body
    return Response(status_code=200)


@app.get("/job/{name}/api/json")
async def job_info(name: str, user: str = Depends(authenticate)):
    if name not in state.jobs:
        raise HTTPException(status_code=404, detail="Not found")
    return {"name": name, "fullName": name, "buildable": True}


@app.post("/job/{name}/doDelete")
async def delete_job(name: str, user: str = Depends(require_crumb)):
    if state.jobs.pop(name, None) is None:
        raise HTTPException(status_code=404, detail="Not found")
    return Response(status_code=200)


@app.post("/credentials/store/system/domain/_/createCredentials")
async def create_credentials(request: Request, user: str = Depends(require_crumb)):
    body = (await request.body()).decode("utf-8")
    try:
        credential_id = ET.fromstring(body).findtext("id")
    except ET.ParseError:
        raise HTTPException(status_code=400, detail="Malformed credential document")
    if not credential_id:
        raise HTTPException(status_code=400, detail="Missing credential id")
    if credential_id in state.credentials:
        raise HTTPException(status_code=409, detail="Credential already exists")
    state.credentials[credential_id] = body
    return Response(status_code=200)


@app.get("/credentials/store/system/domain/_/credential/{credential_id}/api/json")
async def credential_info(credential_id: str, user: str = Depends(authenticate)):
    if credential_id not in state.credentials:
        raise HTTPException(status_code=404, detail="Not found")
    return {"id": credential_id, "fullName": f"system/_/{credential_id}"}


# Test helpers, not part of the real API


@app.get("/_state")
async def get_state():
    return {
        "jobs": state.jobs,
        "credentials": state.credentials,
        "posts": state.posts,
    }


@app.post("/_reset")
async def reset_state():
    state.reset()
    return {"status": "reset"}
