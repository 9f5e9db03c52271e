"""
Services

Long-lived services built on the shared infrastructure package.

Services:
---------
- session_keeper: Keeps an application session credential fresh
  - Refreshes every 20 minutes and on user activity near expiry
  - Exponential backoff, then a single coordinated failure path
  - Best-effort local backup of in-progress editor state
  - Headless runner: python -m services.session_keeper.main
"""
