"""
Locust load scenarios for the registration API.

Run scenarios:
  locust -f locustfile.py --tags race        # Many users, few slots
  locust -f locustfile.py --tags churn       # Register / unregister loops
  locust -f locustfile.py --tags edge        # Bad input
  locust -f locustfile.py                    # Everything

After a race run, verify in the database:
  SELECT capacity FROM events WHERE id = '<race event>';           -- 0
  SELECT COUNT(*) FROM registrations WHERE event_id = '<race event>'; -- 10
"""

import random
import string
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag

RACE_CAPACITY = 10
PASSWORD = "loadtest-password"

# Shared between simulated users of one locust process
RACE_EVENT_ID = None
EVENT_IDS = []


def random_email(prefix: str = "load") -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=10))
    return f"{prefix}_{suffix}@test.com"


def signup_and_login(client, role: str = "attendee"):
    """Returns (user_id, auth headers), or (None, {}) when the API refused."""
    email = random_email(role)
    resp = client.post("/api/v1/auth/signup", json={
        "email": email,
        "name": f"Load {role}",
        "password": PASSWORD,
        "role": role,
    })
    if resp.status_code != 201:
        return None, {}
    user_id = resp.json()["id"]

    resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    if resp.status_code != 200:
        return None, {}
    return user_id, {"Authorization": f"Bearer {resp.json()['access_token']}"}


def create_event(client, headers, title: str, capacity: int):
    future = (datetime.now(timezone.utc) + timedelta(days=30)).isoformat()
    resp = client.post("/api/v1/events/", json={
        "title": title,
        "description": "Load test event",
        "date": future,
        "location": "Load Hall",
        "capacity": capacity,
    }, headers=headers)
    if resp.status_code == 201:
        return resp.json()["id"]
    return None


def _accept(resp, *codes):
    if resp.status_code in codes:
        resp.success()
    else:
        resp.failure(f"Expected {codes}, got {resp.status_code}")


class RaceUser(HttpUser):
    """
    Every simulated user fights for the same RACE_CAPACITY slots.

    Run: locust -f locustfile.py --tags race -u 200 -r 100 --run-time 30s
    201 and 400 CapacityExhausted are both expected; anything else is a bug.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global RACE_EVENT_ID
        self.user_id, self.headers = signup_and_login(self.client)
        if RACE_EVENT_ID is None:
            _, organizer_headers = signup_and_login(self.client, role="organizer")
            RACE_EVENT_ID = create_event(self.client, organizer_headers, "Race Event", RACE_CAPACITY)
        self.done = False

    @tag("race")
    @task
    def grab_slot(self):
        if not RACE_EVENT_ID or not self.headers or self.done:
            return

        with self.client.post("/api/v1/registrations/",
            json={"userId": self.user_id, "eventId": RACE_EVENT_ID},
            headers=self.headers,
            name="/api/v1/registrations/ [race]",
            catch_response=True,
        ) as resp:
            _accept(resp, 201, 400, 409)
            if resp.status_code in (201, 400, 409):
                self.done = True


class ChurnUser(HttpUser):
    """
    Register then unregister on a roomy event. Capacity must return to its
    starting value once the run is stopped and in-flight requests drain.
    """
    wait_time = between(0.05, 0.3)

    def on_start(self):
        self.user_id, self.headers = signup_and_login(self.client)
        if not EVENT_IDS:
            _, organizer_headers = signup_and_login(self.client, role="organizer")
            event_id = create_event(self.client, organizer_headers, "Churn Event", 1000)
            if event_id:
                EVENT_IDS.append(event_id)

    @tag("churn")
    @task(3)
    def register(self):
        if not EVENT_IDS or not self.headers:
            return
        with self.client.post("/api/v1/registrations/",
            json={"userId": self.user_id, "eventId": random.choice(EVENT_IDS)},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            _accept(resp, 201, 409)

    @tag("churn")
    @task(2)
    def unregister(self):
        if not EVENT_IDS or not self.headers:
            return
        with self.client.delete(f"/api/v1/registrations/{random.choice(EVENT_IDS)}",
            headers=self.headers,
            name="/api/v1/registrations/{event_id}",
            catch_response=True,
        ) as resp:
            _accept(resp, 200, 404)

    @tag("churn", "read")
    @task(1)
    def my_registrations(self):
        if self.headers:
            self.client.get("/api/v1/registrations/?page=1&pageSize=10", headers=self.headers)


class EdgeCaseUser(HttpUser):
    """
    Bad input must produce clean 4xx responses, never 500s.

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.user_id, self.headers = signup_and_login(self.client)

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post("/api/v1/registrations/",
            json={"userId": self.user_id, "eventId": "no-such-event"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            _accept(resp, 404)

    @tag("edge")
    @task
    def someone_else(self):
        with self.client.post("/api/v1/registrations/",
            json={"userId": "another-user", "eventId": "no-such-event"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            _accept(resp, 403)

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/registrations/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            _accept(resp, 422)

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/registrations/",
            json={"userId": "x", "eventId": "y"},
            catch_response=True,
        ) as resp:
            _accept(resp, 401)
