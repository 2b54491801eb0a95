from flask import Flask, request, jsonify
import os
import logging

from access_watch import (
    access_watch_sync,
    MemorySessionCacheSync,
    STANDARD_FORWARDED_HEADERS,
)

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s"
)

app = Flask(__name__)

aw = access_watch_sync(
    api_key=os.environ["ACCESS_WATCH_API_KEY"],
    cache=MemorySessionCacheSync(ttl_seconds=300),
    fwd_headers=STANDARD_FORWARDED_HEADERS,
    header_blacklist=["cookie", "authorization"],
)


@app.before_request
def block_known_bad():
    if aw.is_blocked(request):
        return jsonify(error="Forbidden"), 403
    return None


@app.after_request
def report_activity(response):
    aw.report_in_background(request, response)
    return response


@app.route("/")
def hello():
    session = aw.resolve_session(request)
    if session.get("robot"):
        return jsonify(message="Hello robot", session=session.to_dict())
    return jsonify(message="Hello world", session=session.to_dict())


if __name__ == "__main__":
    aw.hello()
    app.run(debug=True)
