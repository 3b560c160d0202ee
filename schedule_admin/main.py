"""
Schedule admin web layer.
Login/logout pages, a guarded dashboard and flash notifications on top of the session controller.
Single stored session (one administrator per running client).
"""
import html
from typing import Annotated

from fastapi import Depends, FastAPI, Form, HTTPException, status
from fastapi.responses import HTMLResponse, RedirectResponse

from schedule_admin.config import DEFAULT_AUTHENTICATED_PATH, LOGIN_PATH
from schedule_admin.errors import ApiError, AuthExpired, LoginFailed
from schedule_admin.identity import SessionIdentity
from schedule_admin.session import SessionController, create_session

app = FastAPI(title="Schedule Admin", version="0.1.0")

_controller: SessionController | None = None


def get_controller() -> SessionController:
    """Shared session controller; built (and rehydrated) on first use."""
    global _controller
    if _controller is None:
        _controller = create_session()
    return _controller


Controller = Annotated[SessionController, Depends(get_controller)]


def require_session(controller: Controller) -> SessionIdentity:
    """Route guard: redirect to the login page unless authenticated."""
    identity = controller.identity
    if identity is None or not controller.is_authenticated():
        raise HTTPException(
            status_code=status.HTTP_302_FOUND,
            detail="Login required",
            headers={"Location": LOGIN_PATH},
        )
    return identity


def _messages_html(messages: list[str]) -> str:
    if not messages:
        return ""
    items = "".join(f"<li>{html.escape(m)}</li>" for m in messages)
    return f'<ul class="errors">{items}</ul>'


def _login_page(messages: list[str], email: str = "", status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Log in</title></head>
<body>
  <h1>Schedule admin</h1>
  {_messages_html(messages)}
  <form method="post" action="/login">
    <label>Email <input type="email" name="email" value="{html.escape(email)}" required></label>
    <label>Password <input type="password" name="password" required></label>
    <button type="submit">Log in</button>
  </form>
</body>
</html>""",
        status_code=status_code,
    )


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "schedule_admin"}


@app.get("/")
def home(controller: Controller):
    target = DEFAULT_AUTHENTICATED_PATH if controller.is_authenticated() else LOGIN_PATH
    return RedirectResponse(url=target, status_code=302)


@app.get("/login", response_class=HTMLResponse)
def login_form(controller: Controller):
    if controller.is_authenticated():
        return RedirectResponse(url=DEFAULT_AUTHENTICATED_PATH, status_code=302)
    return _login_page(controller.notifier.drain())


@app.post("/login")
async def login_submit(
    controller: Controller,
    email: Annotated[str, Form()],
    password: Annotated[str, Form()],
):
    """Exchange credentials; on success go where the controller navigated (the dashboard)."""
    try:
        await controller.login(email, password)
    except LoginFailed as e:
        return _login_page(controller.notifier.drain() + [e.message], email=email, status_code=400)
    return RedirectResponse(url=controller.navigator.location, status_code=302)


@app.get("/logout")
def logout(controller: Controller):
    controller.logout()
    return RedirectResponse(url=LOGIN_PATH, status_code=302)


@app.get("/dashboard", response_class=HTMLResponse)
def dashboard(controller: Controller, identity: Annotated[SessionIdentity, Depends(require_session)]):
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Dashboard</title></head>
<body>
  <h1>Dashboard</h1>
  {_messages_html(controller.notifier.drain())}
  <p>Signed in as <strong>{html.escape(identity.display_name)}</strong>
     ({html.escape(identity.email)}, {html.escape(identity.role)})</p>
  <p><a href="/profile">Reload profile</a> | <a href="/logout">Log out</a></p>
</body>
</html>"""
    )


@app.get("/profile", response_class=HTMLResponse, dependencies=[Depends(require_session)])
async def profile(controller: Controller):
    """Fetch GET /auth/profile through the pipeline (refreshes the access token on 401)."""
    try:
        fresh = await controller.get_profile()
    except AuthExpired:
        return RedirectResponse(url=LOGIN_PATH, status_code=302)
    except ApiError as e:
        return HTMLResponse(
            f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Profile</title></head>
<body>
  <h1>Profile</h1>
  <p>Could not load profile: {html.escape(e.message)}</p>
  <p><a href="/dashboard">Dashboard</a></p>
</body>
</html>""",
            status_code=502,
        )
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Profile</title></head>
<body>
  <h1>Profile</h1>
  <p>Id: {fresh.id}</p>
  <p>Name: {html.escape(fresh.display_name)}</p>
  <p>Email: {html.escape(fresh.email)}</p>
  <p>Role: {html.escape(fresh.role)}</p>
  <p><a href="/dashboard">Dashboard</a></p>
</body>
</html>"""
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "schedule_admin.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
