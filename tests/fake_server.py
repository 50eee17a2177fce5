"""Minimal language server for the end-to-end tests.

Speaks LSP framing on stdio. Hint answers depend on the requested document's
file name; ``FAKE_SERVER_MODE`` selects startup misbehaviour.
"""

import os
import sys
import threading
import time

from pylsp_jsonrpc import streams
from pylsp_jsonrpc.endpoint import Endpoint
from pylsp_jsonrpc.exceptions import JsonRpcException

HINTS = {
    "a.txt": [[0, 3, "x:"], [10, 12, "y:"]],
    "unordered.txt": [[10, 12, "late"], [0, 1, "early"]],
}


def main():
    mode = os.environ.get("FAKE_SERVER_MODE", "")
    if mode == "crash-on-start":
        sys.exit(2)

    print(f"fake server starting, RUST_LOG={os.environ.get('RUST_LOG')}", file=sys.stderr, flush=True)

    reader = streams.JsonRpcStreamReader(sys.stdin.buffer)
    writer = streams.JsonRpcStreamWriter(sys.stdout.buffer)
    documents = {}
    watched = []
    never = threading.Event()
    endpoint = None

    def initialize(params):
        if mode == "reject-initialize":
            raise JsonRpcException("initialize rejected", code=-32603)
        return {"capabilities": {"textDocumentSync": 1}, "serverInfo": {"name": "fake"}}

    def initialized(params):
        endpoint.notify("window/logMessage", {"type": 3, "message": "initialized!"})

    def shutdown(params):
        return None

    def exit_(params):
        os._exit(0)

    def did_open(params):
        document = params["textDocument"]
        documents[document["uri"]] = document["text"]
        endpoint.notify("textDocument/publishDiagnostics", {
            "uri": document["uri"],
            "diagnostics": [{
                "range": {"start": {"line": 0, "character": 0}, "end": {"line": 0, "character": 1}},
                "severity": 3,
                "source": "fake",
                "message": "file opened!",
            }],
        })

    def did_change(params):
        documents[params["textDocument"]["uri"]] = params["contentChanges"][-1]["text"]

    def did_close(params):
        documents.pop(params["textDocument"]["uri"], None)

    def did_change_watched_files(params):
        watched.extend(params["changes"])

    def hints(params):
        name = os.path.basename(params["path"])
        if name == "null.txt":
            return None
        if name == "error.txt":
            raise JsonRpcException("no hints here", code=-32001)
        if name == "crash.txt":
            os._exit(3)
        if name == "hang.txt":
            return never.wait
        return HINTS.get(name, [])

    def echo(params):
        def respond():
            time.sleep(params.get("delay", 0))
            return params
        return respond

    def document_text(params):
        return documents.get(params["uri"])

    def watched_files(params):
        return watched

    endpoint = Endpoint({
        "initialize": initialize,
        "initialized": initialized,
        "shutdown": shutdown,
        "exit": exit_,
        "textDocument/didOpen": did_open,
        "textDocument/didChange": did_change,
        "textDocument/didClose": did_close,
        "workspace/didChangeWatchedFiles": did_change_watched_files,
        "custom/hints": hints,
        "custom/request": echo,
        "custom/documentText": document_text,
        "custom/watchedFiles": watched_files,
    }, writer.write)

    reader.listen(endpoint.consume)


if __name__ == "__main__":
    main()
