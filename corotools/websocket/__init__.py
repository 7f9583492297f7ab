"""WebSocket client and server with reply handlers, pings, reconnects and broadcast."""