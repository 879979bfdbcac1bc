from prometheus_client import Counter, Gauge

from validator_perf.variables import PROMETHEUS_PREFIX


PERFORMANCE_SUMMARY_EPOCH = Gauge(
    "performance_summary_epoch",
    "Last summarized epoch",
    namespace=PROMETHEUS_PREFIX,
)

PERFORMANCE_SUMMARY_VALIDATORS = Gauge(
    "performance_summary_validators",
    "Validators of the last summarized epoch",
    ["state"],  # "active" or "participating" or "non_participating"
    namespace=PROMETHEUS_PREFIX,
)

PERFORMANCE_SUMMARY_FAULTS = Gauge(
    "performance_summary_faults",
    "Validator faults of the last summarized epoch",
    ["kind"],
    namespace=PROMETHEUS_PREFIX,
)

HEADER_CACHE_LOOKUPS = Counter(
    "header_cache_lookups",
    "Block header lookups made by the canonical header search",
    ["result"],  # "hit" or "miss"
    namespace=PROMETHEUS_PREFIX,
)
