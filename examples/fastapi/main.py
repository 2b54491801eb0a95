import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from access_watch import (
    access_watch,
    MemorySessionCache,
    STANDARD_FORWARDED_HEADERS,
)

aw = access_watch(
    api_key=os.environ["ACCESS_WATCH_API_KEY"],
    cache=MemorySessionCache(ttl_seconds=300),
    fwd_headers=STANDARD_FORWARDED_HEADERS,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await aw.hello()
    yield
    await aw.aclose()


app = FastAPI(lifespan=lifespan)


@app.middleware("http")
async def access_watch_middleware(request: Request, call_next):
    if await aw.is_blocked(request):
        return JSONResponse({"error": "Forbidden"}, status_code=403)

    response = await call_next(request)
    aw.report_in_background(request, response)
    return response


@app.get("/")
async def hello(request: Request):
    session = await aw.resolve_session(request)
    return {"message": "Hello world", "session": session.to_dict()}
