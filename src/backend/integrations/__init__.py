"""
Integrations Module - Outbound Agent Backends
=============================================

Clients for the two remote agent backends the relay can front, plus the
credential helpers they share.

Modules:
    chat_backend: ChatBackend protocol and BackendReply
    credentials: azure-identity token providers (ambient, on-behalf-of, client secret)
    agent_run_client: Azure AI Foundry thread/run client and its per-request factory
    rpc_decoder: JSON or event-stream JSON-RPC reply decoding
    tool_invocation_client: JSON-RPC tool client for the Fabric Data Agent

Key Components:

Agent Run Client (agent_run_client.py):
    Drives one chat turn through create thread, post message, create run,
    poll and read reply. Polling is bounded by a fixed attempt count and
    sleeps without blocking the event loop.

Tool Invocation Client (tool_invocation_client.py):
    Long-lived session holding the service token and the discovered tool
    list. Sends the question to the first advertised tool and falls back to
    a plain ``message`` call when the tool call fails.
"""
