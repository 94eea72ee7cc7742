"""Scripted agent used by the end-to-end tests.

Speaks line-delimited JSON-RPC on stdin/stdout: asks the host to
initialize, creates a session, and on each prompt streams an update,
calls one whitelisted and one unknown tool, then answers the prompt with
what the tools returned.
"""

import json
import sys


def send(message):
    sys.stdout.write(json.dumps(message) + "\n")
    sys.stdout.flush()


def main():
    sys.stdout.write("fake agent 0.1 starting\n")
    sys.stdout.flush()
    send({"jsonrpc": "2.0", "id": 0, "method": "initialize", "params": {"protocolVersion": 1}})

    responses = {}
    prompt_id = None
    tool_ids = {900: "echo", 901: "forbidden"}

    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        message = json.loads(line)
        method = message.get("method")

        if method == "session/new":
            sys.stderr.write("session created\n")
            sys.stderr.flush()
            send({"jsonrpc": "2.0", "id": message["id"], "result": {"sessionId": "fake-session"}})
        elif method == "session/prompt":
            prompt_id = message["id"]
            session_id = message["params"]["sessionId"]
            send(
                {
                    "jsonrpc": "2.0",
                    "method": "session/update",
                    "params": {"sessionId": session_id, "update": {"text": "thinking"}},
                }
            )
            send({"jsonrpc": "2.0", "id": 900, "method": "tools/echo", "params": {"text": "ping"}})
            send({"jsonrpc": "2.0", "id": 901, "method": "tools/forbidden", "params": {}})
        elif method is None:
            responses[message["id"]] = message

        if prompt_id is not None and all(i in responses for i in tool_ids):
            tools = responses.get(0, {}).get("result", {}).get("tools", [])
            results = {
                name: responses[i].get("result", responses[i].get("error"))
                for i, name in tool_ids.items()
            }
            send(
                {
                    "jsonrpc": "2.0",
                    "id": prompt_id,
                    "result": {
                        "stopReason": "end_turn",
                        "initializeTools": [tool["name"] for tool in tools],
                        "toolResults": results,
                    },
                }
            )
            prompt_id = None
            for i in tool_ids:
                responses.pop(i)


if __name__ == "__main__":
    main()
