"""
framecast
=========

Raster frame streaming over persistent TCP connections.

One or more producers generate grayscale frames at a fixed cadence and
fan them out to receivers. A receiver accepts any number of producer
connections, decodes frames on one thread per connection and hands each
completed frame to a double-buffered display surface that the render
thread reads without tearing.

Components:
    - stream: wire codec, reliable socket I/O, acceptor, ingest handler,
      fan-out and the double buffer
    - producer: noise frame source, fixed-cadence ticker, producer session
    - display: render surface collaborators and the render loop
    - observability: FPS counting
    - api: optional FastAPI status endpoint

Example:
    from framecast.config import load_config
    from framecast.receiver import ReceiverApp

    app = ReceiverApp(load_config())
    app.start()
    app.run()
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
