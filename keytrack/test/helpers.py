"""
Shared constants and helpers for the test suite
"""
from datetime import datetime, timedelta

ORG_ID = 'org-test'
OTHER_ORG_ID = 'org-other'


class FakeClock:
    """Deterministic clock that ticks one second per call"""

    def __init__(self, start=datetime(2026, 3, 2, 9, 0, 0)):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def api_headers(org_id=ORG_ID, actor_id='user-1', actor_name='Dana Operator'):
    """Identity headers forwarded by the upstream auth layer"""
    return {'X-Org-Id': org_id, 'X-Actor-Id': actor_id, 'X-Actor-Name': actor_name}
