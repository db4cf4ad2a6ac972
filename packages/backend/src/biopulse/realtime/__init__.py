"""Real-time infrastructure — live biomarker updates over WebSocket.

Learn: Three pieces cooperate:
1. ConnectionGateway — which sockets are open and which rooms they joined
2. LiveUpdateBroadcaster — per-patient timers that exist only while
   someone is subscribed, generating synthetic readings on each tick
3. The /ws endpoint — translates client messages into broadcaster calls

Everything runs on the one asyncio event loop; there is no Redis or
cross-process fan-out.
"""
