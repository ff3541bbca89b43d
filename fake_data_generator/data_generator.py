from faker import Faker
from uuid import uuid4
from datetime import datetime, timedelta, timezone
import random

from es_action_store.utils import to_iso

fake = Faker()

# Changed models with field generators
MODEL_FIELDS = {
    "Invoice": {
        "amount": lambda: round(random.uniform(100, 1000), 2),
        "status": lambda: random.choice(["Paid", "Unpaid", "Overdue"])
    },
    "Contract": {
        "start_date": lambda: fake.date(),
        "end_date": lambda: fake.date(),
        "terms": lambda: fake.sentence()
    },
    "UserAccount": {
        "email": lambda: fake.email(),
        "role": lambda: random.choice(["Admin", "Viewer", "Editor"]),
        "is_active": lambda: random.choice([True, False])
    },
    "Project": {
        "title": lambda: fake.bs(),
        "deadline": lambda: fake.future_date().isoformat(),
        "budget": lambda: random.randint(10000, 100000)
    }
}

HTTP_ACTIONS = [
    ("GET", "/v1/{model}s/{id}", "read"),
    ("POST", "/v1/{model}s", "create"),
    ("PATCH", "/v1/{model}s/{id}", "update"),
    ("DELETE", "/v1/{model}s/{id}", "delete"),
]
ROLES = ["Admin", "User", "Manager"]
APPS = ["dashboard", "billing-api", "mobile"]
ENVIRONMENTS = ["production", "staging"]
FRAMEWORKS = [("express", "4.19.2"), ("fastify", "4.26.0"), ("apollo", "3.10.0")]

# Configuration
AGENT_POOL_SIZE = 20
TARGET_POOL_SIZE_PER_MODEL = 30

# Global pools
_agent_pool = []
_target_pool = {model: [] for model in MODEL_FIELDS.keys()}


def create_agent_pool():
    global _agent_pool
    _agent_pool = [
        {
            "id": str(uuid4()),
            "type": "USER",
            "name": fake.name(),
            "meta": {"role": random.choice(ROLES), "email": fake.email()}
        }
        for _ in range(AGENT_POOL_SIZE)
    ]


def create_target_pool():
    global _target_pool
    for model in MODEL_FIELDS:
        _target_pool[model] = [str(uuid4()) for _ in range(TARGET_POOL_SIZE_PER_MODEL)]


def get_random_agent():
    if not _agent_pool:
        create_agent_pool()
    return random.choice(_agent_pool)


def get_random_target(model):
    if not _target_pool[model]:
        create_target_pool()
    return random.choice(_target_pool[model])


def generate_changes(model, target_id, operation):
    fields = MODEL_FIELDS[model]
    changed_fields = random.sample(list(fields.keys()), k=random.randint(1, len(fields)))
    changes = []
    for f in changed_fields:
        old = str(fields[f]())
        new = str(fields[f]())
        while new == old:
            new = str(fields[f]())
        changes.append({
            "model": model,
            "operation": operation,
            "id": target_id,
            "path": f"/{f}",
            "before": old,
            "after": new,
            "meta": {"source": "api"}
        })
    return changes


def generate_action(company_id, timestamp=None):
    model = random.choice(list(MODEL_FIELDS.keys()))
    verb, route, operation = random.choice(HTTP_ACTIONS)
    agent = get_random_agent()
    target_id = get_random_target(model)
    framework_name, framework_version = random.choice(FRAMEWORKS)
    timestamp = timestamp or datetime.now(timezone.utc)
    prompt_tokens = random.randint(100, 2000)
    response_tokens = random.randint(50, 500)

    action = {
        "timestamp": to_iso(timestamp),
        "companyId": company_id,
        "clientId": f"client_{random.randint(1, 5)}",
        "app": random.choice(APPS),
        "environment": random.choice(ENVIRONMENTS),
        "framework": {"name": framework_name, "version": framework_version},
        "sessionId": str(uuid4()),
        "traceIds": [uuid4().hex for _ in range(random.randint(1, 2))],
        "action": {
            "id": str(uuid4()),
            "type": "HTTP",
            "verb": verb,
            "object": route.format(model=model.lower(), id=target_id)
        },
        "agents": [agent],
        "targets": [
            {"id": target_id, "type": model, "meta": {"owner": agent["id"]}}
        ],
        "request": {
            "ip": fake.ipv4(),
            "userAgent": fake.user_agent(),
            "body": {"requestId": str(uuid4()), "dryRun": random.choice([True, False])}
        },
        "response": {
            "status": random.choice(["200", "201", "400", "404", "500"]),
            "time": round(random.uniform(5, 900), 2),
            "body": {"result": random.choice(["success", "error"])},
            "headers": {"Content-Type": "application/json"}
        },
        "cost": {
            "amount": round((prompt_tokens + response_tokens) * 0.0000002, 8),
            "currency": "USD",
            "components": [
                {"type": "gpt-4o-mini", "key": "promptTokens", "amount": round(prompt_tokens * 0.00000015, 8)},
                {"type": "gpt-4o-mini", "key": "responseTokens", "amount": round(response_tokens * 0.0000006, 8)}
            ],
            "meta": {"promptTokens": str(prompt_tokens), "responseTokens": str(response_tokens)}
        },
        "meta": {"importance": random.choice(["low", "high"]), "category": "user-interaction"}
    }

    if operation != "read":
        action["changes"] = generate_changes(model, target_id, operation)

    return action


def generate_bulk_actions(n=1000, company_id="company123", months=3):
    create_agent_pool()
    create_target_pool()
    now = datetime.now(timezone.utc)
    return [
        generate_action(company_id, now - timedelta(minutes=random.randint(0, months * 30 * 24 * 60)))
        for _ in range(n)
    ]
