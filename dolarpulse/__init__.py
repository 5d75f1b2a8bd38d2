"""DolarPulse core package.

Intraday USD/PEN sampling pipeline:
- numeric: locale-tolerant price parsing
- browser: Playwright page fetcher with a shared, lazily launched engine
- extractor / sources: retrying extraction strategies for each quote source
- aggregator / models: averages, best offers and the immutable Sample
- history: per-day in-memory series
- publisher: boot/tick fan-out to live subscribers
- scheduler: the periodic sampling cycle
- server: FastAPI WebSocket and health surface
- logger / exceptions: loguru setup and the error hierarchy
"""

__version__ = "1.0.0"
