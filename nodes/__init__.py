"""
Node sessions for the LayerEdge bot.

A session binds one wallet identity (signer), one proxy selection and the
browser-like default headers, and exposes the remote API's operations as
async methods returning ``bool``.

Submodules:
    layeredge: ``LayerEdgeSession`` – referralapi.layeredge.io light-node API.
"""
