import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from es_action_store.config import DEFAULT_START_MONTHS_AGO
from es_action_store.mapping import INDEX_MAPPING
from es_action_store.utils import add_months, parse_timestamp, to_iso, utc_now

logger = logging.getLogger(__name__)

SCALAR_SET_FIELDS = ["id", "clientId", "app", "environment", "sessionId", "traceIds"]
FRAMEWORK_FIELDS = ["name", "version"]
ACTION_FIELDS = ["id", "type", "verb", "object"]
ENTITY_FIELDS = ["id", "type", "name"]
CHANGE_FIELDS = ["model", "operation", "id", "path", "before", "after"]

# text fields are matched exactly through their keyword sub-field
ACTION_KEYWORD_FIELDS = {"object"}
CHANGE_KEYWORD_FIELDS = {"path", "before", "after"}

Clause = Dict[str, Any]


def as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def collapse(clauses: List[Clause], occur: str) -> Optional[Clause]:
    """
    Combine clauses with a bool query, unless there is only one of them.

    Args:
        clauses: Clauses to combine
        occur: "must" (AND) or "should" (OR)

    Returns:
        None for no clauses, the bare clause for one, a bool query otherwise
    """
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"bool": {occur: clauses}}


def term(field: str, value: Any) -> Clause:
    return {"term": {field: value}}


def nested(path: str, query: Clause) -> Clause:
    return {"nested": {"path": path, "query": query}}


class FindManyQueryBuilder:
    """Compiles findMany filters into a list of Elasticsearch query clauses."""

    def __init__(self, default_start_months_ago: int = DEFAULT_START_MONTHS_AGO):
        self.default_start_months_ago = default_start_months_ago

    def build(
        self,
        options: Optional[Dict[str, Any]],
        filters: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> List[Clause]:
        """
        Build the clauses of a findMany search. The caller ANDs them together.

        Sample filters:
            {
                "companyId": "company_123",
                "action": [{"type": "HTTP", "verb": "POST"}, {"type": "GRAPHQL"}],
                "agents": {"type": "USER", "meta": {"clerkUserId": "clk_123"}},
                "request": {"body": {"transactionId": "transaction_123"}},
            }

        Args:
            options: Pagination and sort options (not used for filtering)
            filters: Filters of the search; companyId is required
            now: Instant used for the default date range

        Returns:
            Ordered list of query clauses
        """
        if not filters or not filters.get("companyId"):
            raise ValueError("filters.companyId is required")

        now = now or utc_now()

        must = [
            term("companyId", filters["companyId"]),
            self._timestamp_range(filters.get("start"), filters.get("end"), now),
        ]

        for field in SCALAR_SET_FIELDS:
            if filters.get(field):
                must.append({"terms": {field: as_list(filters[field])}})

        optional_clauses = [
            ("framework", lambda value: self._object_match("framework", value, FRAMEWORK_FIELDS)),
            (
                "action",
                lambda value: self._object_match(
                    "action", value, ACTION_FIELDS, ACTION_KEYWORD_FIELDS
                ),
            ),
            ("agents", lambda value: self._nested_entity("agents", value, ENTITY_FIELDS)),
            ("targets", lambda value: self._nested_entity("targets", value, ENTITY_FIELDS)),
            ("request", self._request),
            ("response", self._response),
            (
                "changes",
                lambda value: self._nested_entity(
                    "changes", value, CHANGE_FIELDS, CHANGE_KEYWORD_FIELDS
                ),
            ),
            ("meta", lambda value: self._metadata("meta", value)),
            ("query", self._free_text),
        ]

        for key, compile_clause in optional_clauses:
            if not filters.get(key):
                continue
            clause = compile_clause(filters[key])
            if clause:
                must.append(clause)

        return must

    def _timestamp_range(self, start: Any, end: Any, now: datetime) -> Clause:
        gte = parse_timestamp(start) if start else add_months(now, -self.default_start_months_ago)
        lt = parse_timestamp(end) if end else now
        return {"range": {"timestamp": {"gte": to_iso(gte), "lt": to_iso(lt)}}}

    def _field_terms(
        self, prefix: str, candidate: Dict[str, Any], fields: List[str], keyword_fields=()
    ) -> List[Clause]:
        clauses = []
        for field in fields:
            value = candidate.get(field)
            if value is None or value == "":
                continue
            name = f"{field}.keyword" if field in keyword_fields else field
            clauses.append(term(f"{prefix}.{name}", value))
        return clauses

    def _object_match(
        self, prefix: str, value: Any, fields: List[str], keyword_fields=()
    ) -> Optional[Clause]:
        # e.g. {"framework": [{"name": "apollo"}, {"name": "express", "version": "5.0.0"}]}
        should = []
        for candidate in as_list(value):
            if not isinstance(candidate, dict):
                continue
            clause = collapse(self._field_terms(prefix, candidate, fields, keyword_fields), "must")
            if clause:
                should.append(clause)
        return collapse(should, "should")

    def _nested_entity(
        self, path: str, value: Any, fields: List[str], keyword_fields=()
    ) -> Optional[Clause]:
        # e.g. {"agents": [{"type": "USER", "id": "user_123"},
        #                  {"type": "USER", "meta": {"clerkUserId": "clk_user_456"}}]}
        should = []
        for candidate in as_list(value):
            if not isinstance(candidate, dict):
                continue
            must = self._field_terms(path, candidate, fields, keyword_fields)
            if candidate.get("meta"):
                must.extend(self._metadata_clauses(f"{path}.meta", candidate["meta"]))
            clause = collapse(must, "must")
            if clause:
                should.append(clause)

        query = collapse(should, "should")
        if not query:
            return None
        return nested(path, query)

    def _metadata_pair(self, path: str, key: str, value: Any) -> Clause:
        # every pair lives in its own nested element, so each one is matched on its own
        return nested(
            path,
            {
                "bool": {
                    "must": [
                        term(f"{path}.key", key),
                        term(f"{path}.value.keyword", value),
                    ]
                }
            },
        )

    def _metadata_clauses(self, path: str, value: Any) -> List[Clause]:
        if isinstance(value, dict):
            return [self._metadata_pair(path, key, item) for key, item in value.items()]
        clause = self._metadata(path, value)
        return [clause] if clause else []

    def _metadata(self, path: str, value: Any) -> Optional[Clause]:
        should = []
        for meta in as_list(value):
            if not isinstance(meta, dict):
                continue
            clause = collapse(
                [self._metadata_pair(path, key, item) for key, item in meta.items()], "must"
            )
            if clause:
                should.append(clause)
        return collapse(should, "should")

    def _request(self, value: Any) -> Optional[Clause]:
        should = []
        for request in as_list(value):
            if not isinstance(request, dict):
                continue
            must = []
            for key, item in request.items():
                if isinstance(item, dict):
                    # match a child under the parent `key`
                    for inner_key, inner_value in item.items():
                        must.append(
                            nested(
                                "request",
                                {
                                    "bool": {
                                        "must": [
                                            term("request.key", inner_key),
                                            term("request.parent", key),
                                            term("request.value.keyword", inner_value),
                                        ]
                                    }
                                },
                            )
                        )
                else:
                    must.append(
                        nested(
                            "request",
                            {
                                "bool": {
                                    "must": [
                                        term("request.key", key),
                                        term("request.value.keyword", item),
                                    ]
                                }
                            },
                        )
                    )
            clause = collapse(must, "must")
            if clause:
                should.append(clause)
        return collapse(should, "should")

    def _key_value_map(self, path: str, value: Any) -> Optional[Clause]:
        # all pairs of one map share a single nested clause (unlike _metadata)
        should = []
        for pairs in as_list(value):
            if not isinstance(pairs, dict):
                continue
            must = []
            for key, item in pairs.items():
                must.append(term(f"{path}.key", key))
                must.append(term(f"{path}.value.keyword", item))
            query = collapse(must, "must")
            if query:
                should.append(nested(path, query))
        return collapse(should, "should")

    def _response(self, value: Any) -> Optional[Clause]:
        if not isinstance(value, dict):
            return None

        must = []
        status = value.get("status")
        if status:
            if isinstance(status, (list, tuple)):
                must.append({"terms": {"response.status": list(status)}})
            else:
                must.append(term("response.status", status))

        time = value.get("time") or {}
        bounds = {bound: time[bound] for bound in ("gte", "lt") if time.get(bound)}
        if bounds:
            must.append({"range": {"response.time": bounds}})

        for field in ("body", "headers"):
            if value.get(field):
                clause = self._key_value_map(f"response.{field}", value[field])
                if clause:
                    must.append(clause)

        return collapse(must, "must")

    def _free_text(self, value: Any) -> Clause:
        should = [
            term(field, value)
            for field in [
                "id",
                "app",
                "environment",
                "framework.name",
                "sessionId",
                "traceIds",
                "action.id",
                "action.object.keyword",
            ]
        ]

        for entity in ("agents", "targets"):
            should.append(
                nested(
                    entity,
                    {
                        "bool": {
                            "should": [
                                term(f"{entity}.id", value),
                                nested(
                                    f"{entity}.meta",
                                    term(f"{entity}.meta.value.keyword", value),
                                ),
                            ]
                        }
                    },
                )
            )

        for path in ("request", "response.body", "response.headers"):
            should.append(nested(path, term(f"{path}.value.keyword", value)))

        should.append(nested("changes", term("changes.id", value)))
        should.append(nested("changes", term("changes.path.keyword", value)))
        should.append(nested("meta", term("meta.value.keyword", value)))

        return {"bool": {"should": should}}


def build_find_many_query(
    options: Optional[Dict[str, Any]],
    filters: Dict[str, Any],
    now: Optional[datetime] = None,
    default_start_months_ago: int = DEFAULT_START_MONTHS_AGO,
) -> List[Clause]:
    """Compile findMany filters into a list of query clauses."""
    return FindManyQueryBuilder(default_start_months_ago).build(options, filters, now)


def extract_field_references(obj: Any, fields: set = None) -> List[str]:
    """
    Recursively extract field references from query clauses.

    Args:
        obj: Query clause, list of clauses, or part of one
        fields: Set to collect field names (used for recursion)

    Returns:
        Sorted list of field names referenced by the clauses
    """
    if fields is None:
        fields = set()

    if isinstance(obj, dict):
        for key, value in obj.items():
            if key in ["term", "terms", "range"] and isinstance(value, dict):
                fields.update(value.keys())
            elif key == "nested" and isinstance(value, dict):
                if isinstance(value.get("path"), str):
                    fields.add(value["path"])
                extract_field_references(value.get("query"), fields)
            else:
                extract_field_references(value, fields)
    elif isinstance(obj, list):
        for item in obj:
            extract_field_references(item, fields)

    return sorted(fields)


def get_available_fields(mapping: Dict[str, Any]) -> Dict[str, str]:
    """
    Extract available field names and types from index mapping properties.

    Keyword sub-fields are listed under their dotted name, e.g. `action.object.keyword`.
    """
    available_fields = {}

    def extract_fields(properties: Dict[str, Any], prefix: str = ""):
        for field_name, field_config in properties.items():
            full_field_name = f"{prefix}.{field_name}" if prefix else field_name

            if isinstance(field_config, dict):
                available_fields[full_field_name] = field_config.get("type", "object")

                for sub_name, sub_config in (field_config.get("fields") or {}).items():
                    available_fields[f"{full_field_name}.{sub_name}"] = sub_config.get(
                        "type", "unknown"
                    )

                if "properties" in field_config:
                    extract_fields(field_config["properties"], full_field_name)

    extract_fields(mapping)
    return available_fields


def validate_fields_against_schema(
    clauses: List[Clause], mapping: Dict[str, Any] = INDEX_MAPPING
) -> Dict[str, Any]:
    """
    Validate that all fields referenced by the clauses exist in the index mapping.

    Args:
        clauses: Compiled query clauses
        mapping: Index mapping properties

    Returns:
        Dictionary containing field validation results
    """
    referenced_fields = extract_field_references(clauses)
    available_fields = get_available_fields(mapping)

    missing_fields = [field for field in referenced_fields if field not in available_fields]
    if missing_fields:
        return {
            "valid": False,
            "missing_fields": missing_fields,
            "error": f"Fields not found in schema: {', '.join(missing_fields)}",
        }

    return {"valid": True, "referenced_fields": referenced_fields}
