"""
A fake HTTP server to stand in for the services the application calls
(Robotoff, or any HTTP API) in integration tests.

Responses to send are given up front, in order. Every request received
is dumped as json in the dump directory (``req-<n>.json``) so tests can
check what the application sent.
"""
import asyncio
import glob
import json
import logging
import os
import threading
from dataclasses import dataclass, field, asdict
from typing import Dict

from aiohttp import web

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_BODY = {"foo": "blah"}


@dataclass(frozen=True)
class FakeResponse:
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    def __post_init__(self):
        if isinstance(self.body, (dict, list)):
            headers = {"Content-Type": "application/json", **self.headers}
            object.__setattr__(self, "headers", headers)
            object.__setattr__(self, "body", json.dumps(self.body))
        elif not isinstance(self.body, str):
            raise TypeError(f"fake response body must be a str, a dict or a list, not {type(self.body).__name__}")

    @classmethod
    def coerce(cls, response):
        if isinstance(response, cls):
            return response
        return cls(**response)


class FakeHTTPServer(object):

    def __init__(self, port, dump_path, responses=None, host="0.0.0.0", startup_timeout=5):
        self.host = host
        self.requested_port = port
        self.port = None
        self.dump_path = os.fspath(dump_path)
        self.responses = [FakeResponse.coerce(r) for r in responses or []]
        self.startup_timeout = startup_timeout

        self._lock = threading.Lock()
        self._received = 0
        self._loop = None
        self._stopping = None
        self._error = None
        self._ready = threading.Event()
        self._thread = threading.Thread(target=self._thread_main, daemon=True,
                                        name=f"fake-http-{port}")

    def __str__(self):
        return f"host: {self.host}, port: {self.port}, dump_path: {self.dump_path}"

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.stop()

    @property
    def url(self):
        return f"http://127.0.0.1:{self.port}"

    def _dump(self, name, payload):
        with open(os.path.join(self.dump_path, name), "w", encoding="utf-8") as fp:
            json.dump(payload, fp, indent=2, sort_keys=True)

    def _next_number(self):
        with self._lock:
            num = self._received
            self._received += 1
        return num

    async def _handle(self, request):
        body = await request.read()
        num = self._next_number()
        self._dump(f"req-{num}.json", {
            "method": request.method,
            "path": request.path,
            "query": request.query_string,
            "headers": dict(request.headers),
            "body": body.decode("utf-8", errors="replace"),
        })
        logger.debug("fake server got request %s: %s %s", num, request.method, request.path_qs)
        if num < len(self.responses):
            response = self.responses[num]
            return web.Response(status=response.status, headers=response.headers,
                                body=response.body.encode("utf-8"))
        return web.json_response(DEFAULT_RESPONSE_BODY)

    async def _serve(self):
        app = web.Application()
        app.router.add_route("*", "/{path_info:.*}", self._handle)
        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        try:
            site = web.TCPSite(runner, self.host, self.requested_port)
            await site.start()
            self.port = runner.addresses[0][1]
            self._stopping = asyncio.Event()
            self._ready.set()
            await self._stopping.wait()
        finally:
            await runner.cleanup()

    def _thread_main(self):
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._serve())
        except (OSError, RuntimeError) as e:
            # RuntimeError: loop stopped by stop() before it was ready
            self._error = e
            self._ready.set()
        finally:
            self._loop.close()

    def _clear_dumps(self):
        for pattern in ("req-*.json", "resp-*.json"):
            for path in glob.glob(os.path.join(self.dump_path, pattern)):
                os.remove(path)

    def start(self):
        os.makedirs(self.dump_path, exist_ok=True)
        # numbering restarts at 0: dumps of an earlier server would mix in
        self._clear_dumps()
        for num, response in enumerate(self.responses):
            self._dump(f"resp-{num}.json", asdict(response))

        self._thread.start()
        if not self._ready.wait(self.startup_timeout):
            self.stop()
            raise RuntimeError(f"fake HTTP server on port {self.requested_port} did not start")
        if self._error is not None:
            raise self._error
        logger.info("fake HTTP server listening on %s:%s", self.host, self.port)
        return self

    def stop(self):
        if self._loop is not None and not self._loop.is_closed():
            try:
                if self._stopping is not None:
                    self._loop.call_soon_threadsafe(self._stopping.set)
                else:
                    # still starting up
                    self._loop.call_soon_threadsafe(self._loop.stop)
            except RuntimeError:
                # loop closed in between
                pass
        if self._thread.ident is not None:
            self._thread.join(timeout=3)

    def received_requests(self):
        """The requests dumped so far, in the order they were received."""
        paths = glob.glob(os.path.join(self.dump_path, "req-*.json"))
        paths.sort(key=lambda p: int(os.path.basename(p)[len("req-"):-len(".json")]))
        requests = []
        for path in paths:
            with open(path, "r", encoding="utf-8") as fp:
                requests.append(json.load(fp))
        return requests


def fake_http_server(port, dump_path, responses=None, host="0.0.0.0"):
    """
    Launch a fake HTTP server, return it once it listens.

    Args:
        port (int): port to listen on, 0 for any free port (see .port)
        dump_path (str): directory where requests are dumped
        responses (list): FakeResponse objects (or mappings of their
            fields) to send, in order; past the end of the list a 200 with
            a small json body is sent

    Returns:
        FakeHTTPServer: call stop() on it when done
    """
    return FakeHTTPServer(port, dump_path, responses, host=host).start()
