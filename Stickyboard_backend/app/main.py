import logging
from pathlib import Path

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from app.api import notes
from app.api import auth as auth_api
from app.config import settings
from app.room import hub
from app.security import DEV_JWT_SECRET, JWT_SECRET, resolve_user_id
from app.ws import Session

app = FastAPI(title="Just Sticky Notes")

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(notes.router, prefix="/api/notes", tags=["notes"])
app.include_router(auth_api.router, prefix="/auth", tags=["auth"])


@app.on_event("startup")
async def startup():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if settings.AUTH_REQUIRED and JWT_SECRET == DEV_JWT_SECRET:
        logging.getLogger("stickyboard.security").warning(
            "AUTH_WEAK_SECRET AUTH_REQUIRED is on but AUTH_JWT_SECRET is not set; session tokens use the built-in dev secret"
        )
    await hub.startup()
    # 静态资源（前端页面）
    static_dir = Path(settings.STATIC_DIR)
    if static_dir.is_dir():
        from fastapi.staticfiles import StaticFiles
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")


@app.on_event("shutdown")
async def shutdown():
    await hub.shutdown()


@app.get("/api/health")
async def health():
    room = hub.get(settings.ROOM_NAME)
    return {"ok": True, "room": room.name, "sessions": len(room)}


@app.websocket("/ws")
async def websocket_room(websocket: WebSocket):
    user_id = resolve_user_id(websocket)
    if settings.AUTH_REQUIRED and not user_id:
        # 握手阶段直接拒绝
        await websocket.close(code=1008)
        return
    await websocket.accept()
    session = Session(websocket, user_id=user_id)
    room = hub.get(settings.ROOM_NAME)
    if not await room.join(session):
        return
    try:
        while session.alive:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            await room.receive(session, raw)
    except WebSocketDisconnect:
        pass
    finally:
        room.leave(session)


def run() -> None:
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
