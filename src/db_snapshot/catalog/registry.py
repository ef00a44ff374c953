"""Static registry of snapshotted tables.

Each entry declares the table's layer, the tables it references via foreign
key, and (rarely) a physical storage name that differs from the model name.
Entry order is only a tie-breaker: the canonical FK-safe order is derived
from ``refs`` by ``db_snapshot.catalog.ordering``.

Adding a table means adding one ``Table`` member and one ``TableDef`` here
(or listing it in ``EXCLUDED_TABLES``).  ``validate_catalog()`` runs at
import time and rejects a member that is neither, or both.
"""

from db_snapshot.catalog.models import CatalogError, Layer, ScopeFilter, Table, TableDef

T = Table

CATALOG: tuple[TableDef, ...] = (
    # ------------------------------------------------------------------
    # Layer 0 - platform configuration
    # ------------------------------------------------------------------
    TableDef(table=T.SYSTEM_SETTING, layer=Layer.SYSTEM, physical="system_settings"),
    TableDef(table=T.AI_CONFIG, layer=Layer.SYSTEM, physical="ai_configs"),
    TableDef(table=T.AI_MODEL, layer=Layer.SYSTEM, physical="ai_models"),
    TableDef(table=T.INSTITUTION_TYPE, layer=Layer.SYSTEM),
    TableDef(table=T.TAG, layer=Layer.SYSTEM, physical="tags"),
    TableDef(table=T.PARAMETER, layer=Layer.SYSTEM),
    TableDef(table=T.PARAMETER_TAG, layer=Layer.SYSTEM, refs=(T.PARAMETER, T.TAG)),
    TableDef(table=T.PARAMETER_SCORING_ANCHOR, layer=Layer.SYSTEM, refs=(T.PARAMETER,)),
    TableDef(table=T.PROMPT_TEMPLATE, layer=Layer.SYSTEM),
    TableDef(table=T.PROMPT_BLOCK, layer=Layer.SYSTEM),
    TableDef(table=T.PROMPT_COMPOSITION_CONFIG, layer=Layer.SYSTEM),
    # ------------------------------------------------------------------
    # Layer 1 - specs
    # ------------------------------------------------------------------
    TableDef(table=T.ANALYSIS_SPEC, layer=Layer.SPECS, refs=(T.PROMPT_TEMPLATE,)),
    TableDef(table=T.ANALYSIS_TRIGGER, layer=Layer.SPECS, refs=(T.ANALYSIS_SPEC,)),
    TableDef(
        table=T.ANALYSIS_ACTION,
        layer=Layer.SPECS,
        refs=(T.ANALYSIS_TRIGGER, T.PARAMETER),
    ),
    TableDef(table=T.ANALYSIS_PROFILE, layer=Layer.SPECS),
    TableDef(table=T.COMPILED_ANALYSIS_SET, layer=Layer.SPECS, refs=(T.ANALYSIS_PROFILE,)),
    TableDef(table=T.PARAMETER_SET, layer=Layer.SPECS),
    TableDef(
        table=T.PARAMETER_SET_PARAMETER,
        layer=Layer.SPECS,
        refs=(T.PARAMETER_SET, T.PARAMETER),
    ),
    TableDef(table=T.PROMPT_SLUG, layer=Layer.SPECS),
    TableDef(
        table=T.PROMPT_SLUG_PARAMETER,
        layer=Layer.SPECS,
        refs=(T.PROMPT_SLUG, T.PARAMETER),
    ),
    TableDef(table=T.PROMPT_SLUG_RANGE, layer=Layer.SPECS, refs=(T.PROMPT_SLUG,)),
    TableDef(table=T.BDD_FEATURE_SET, layer=Layer.SPECS),
    TableDef(table=T.BDD_UPLOAD, layer=Layer.SPECS, refs=(T.BDD_FEATURE_SET,)),
    # Caller-scoped targets reference learner data; they only travel with it.
    # A restore without learners clears all targets but reinserts only the
    # shared ones, so caller-scoped targets are lost (see RestorePlan.warnings).
    TableDef(
        table=T.BEHAVIOR_TARGET,
        layer=Layer.SPECS,
        refs=(T.PARAMETER, T.PLAYBOOK, T.CALLER_IDENTITY, T.BEHAVIOR_TARGET),
        scope_filter=ScopeFilter(column="scope", excluded_values=frozenset({"CALLER"})),
    ),
    # ------------------------------------------------------------------
    # Layer 2 - organisation and content
    # ------------------------------------------------------------------
    TableDef(table=T.INSTITUTION, layer=Layer.ORGANISATION, refs=(T.INSTITUTION_TYPE,)),
    TableDef(table=T.USER, layer=Layer.ORGANISATION, refs=(T.INSTITUTION,)),
    TableDef(
        table=T.DOMAIN,
        layer=Layer.ORGANISATION,
        refs=(T.INSTITUTION, T.PLAYBOOK),
    ),
    TableDef(table=T.SUBJECT, layer=Layer.ORGANISATION),
    TableDef(table=T.SUBJECT_DOMAIN, layer=Layer.ORGANISATION, refs=(T.SUBJECT, T.DOMAIN)),
    TableDef(table=T.CONTENT_SOURCE, layer=Layer.ORGANISATION),
    TableDef(
        table=T.SUBJECT_SOURCE,
        layer=Layer.ORGANISATION,
        refs=(T.SUBJECT, T.CONTENT_SOURCE),
    ),
    TableDef(
        table=T.CONTENT_ASSERTION,
        layer=Layer.ORGANISATION,
        refs=(T.CONTENT_SOURCE, T.CONTENT_ASSERTION),
    ),
    TableDef(
        table=T.CONTENT_QUESTION,
        layer=Layer.ORGANISATION,
        refs=(T.CONTENT_SOURCE, T.CONTENT_ASSERTION),
    ),
    TableDef(table=T.CONTENT_VOCABULARY, layer=Layer.ORGANISATION, refs=(T.CONTENT_SOURCE,)),
    TableDef(
        table=T.MEDIA_ASSET,
        layer=Layer.ORGANISATION,
        refs=(T.CONTENT_SOURCE, T.USER),
        physical="media_assets",
    ),
    TableDef(
        table=T.SUBJECT_MEDIA,
        layer=Layer.ORGANISATION,
        refs=(T.SUBJECT, T.MEDIA_ASSET),
        physical="subject_media",
    ),
    TableDef(table=T.CURRICULUM, layer=Layer.ORGANISATION, refs=(T.SUBJECT,)),
    TableDef(
        table=T.PLAYBOOK,
        layer=Layer.ORGANISATION,
        refs=(T.DOMAIN, T.CURRICULUM, T.PLAYBOOK),
    ),
    TableDef(
        table=T.PLAYBOOK_ITEM,
        layer=Layer.ORGANISATION,
        refs=(T.PLAYBOOK, T.ANALYSIS_SPEC, T.PROMPT_TEMPLATE),
    ),
    TableDef(table=T.PROMPT_STACK, layer=Layer.ORGANISATION, refs=(T.PLAYBOOK,)),
    TableDef(
        table=T.PROMPT_STACK_ITEM,
        layer=Layer.ORGANISATION,
        refs=(T.PROMPT_STACK, T.PROMPT_BLOCK, T.PROMPT_SLUG),
    ),
    TableDef(table=T.AGENT_INSTANCE, layer=Layer.ORGANISATION, refs=(T.ANALYSIS_SPEC,)),
    TableDef(table=T.KNOWLEDGE_DOC, layer=Layer.ORGANISATION),
    TableDef(table=T.KNOWLEDGE_CHUNK, layer=Layer.ORGANISATION, refs=(T.KNOWLEDGE_DOC,)),
    TableDef(
        table=T.KNOWLEDGE_ARTIFACT,
        layer=Layer.ORGANISATION,
        refs=(T.KNOWLEDGE_CHUNK, T.PARAMETER),
    ),
    # ------------------------------------------------------------------
    # Layer 3 - learners
    # ------------------------------------------------------------------
    TableDef(
        table=T.CALLER,
        layer=Layer.LEARNERS,
        refs=(T.DOMAIN, T.USER, T.COHORT_GROUP),
    ),
    TableDef(table=T.CALLER_IDENTITY, layer=Layer.LEARNERS, refs=(T.CALLER,)),
    TableDef(table=T.CALLER_ATTRIBUTE, layer=Layer.LEARNERS, refs=(T.CALLER,)),
    TableDef(table=T.COHORT_GROUP, layer=Layer.LEARNERS, refs=(T.DOMAIN, T.CALLER)),
    TableDef(
        table=T.COHORT_PLAYBOOK,
        layer=Layer.LEARNERS,
        refs=(T.COHORT_GROUP, T.PLAYBOOK),
    ),
    TableDef(table=T.CALLER_PLAYBOOK, layer=Layer.LEARNERS, refs=(T.CALLER, T.PLAYBOOK)),
    TableDef(table=T.CALL, layer=Layer.LEARNERS, refs=(T.CALLER, T.PLAYBOOK)),
    TableDef(table=T.CALL_MESSAGE, layer=Layer.LEARNERS, refs=(T.CALL,)),
    TableDef(
        table=T.CALL_SCORE,
        layer=Layer.LEARNERS,
        refs=(T.CALL, T.PARAMETER, T.ANALYSIS_SPEC),
    ),
    TableDef(table=T.CALL_TARGET, layer=Layer.LEARNERS, refs=(T.CALL, T.PARAMETER)),
    TableDef(table=T.CALL_ACTION, layer=Layer.LEARNERS, refs=(T.CALL, T.CALLER)),
    TableDef(table=T.CALLER_MEMORY, layer=Layer.LEARNERS, refs=(T.CALLER, T.CALL)),
    TableDef(table=T.CALLER_MEMORY_SUMMARY, layer=Layer.LEARNERS, refs=(T.CALLER,)),
    TableDef(table=T.CALLER_PERSONALITY, layer=Layer.LEARNERS, refs=(T.CALLER,)),
    TableDef(table=T.CALLER_PERSONALITY_PROFILE, layer=Layer.LEARNERS, refs=(T.CALLER,)),
    TableDef(
        table=T.PERSONALITY_OBSERVATION,
        layer=Layer.LEARNERS,
        refs=(T.CALLER, T.CALL),
    ),
    TableDef(table=T.CALLER_TARGET, layer=Layer.LEARNERS, refs=(T.CALLER, T.PARAMETER)),
    TableDef(
        table=T.BEHAVIOR_MEASUREMENT,
        layer=Layer.LEARNERS,
        refs=(T.CALL, T.PARAMETER),
    ),
    TableDef(table=T.REWARD_SCORE, layer=Layer.LEARNERS, refs=(T.CALL,)),
    TableDef(
        table=T.GOAL,
        layer=Layer.LEARNERS,
        refs=(T.CALLER, T.PLAYBOOK, T.ANALYSIS_SPEC),
    ),
    TableDef(table=T.COMPOSED_PROMPT, layer=Layer.LEARNERS, refs=(T.CALLER, T.CALL)),
    TableDef(table=T.ONBOARDING_SESSION, layer=Layer.LEARNERS, refs=(T.CALLER, T.DOMAIN)),
    TableDef(
        table=T.CONVERSATION_ARTIFACT,
        layer=Layer.LEARNERS,
        refs=(T.CALL, T.CALLER),
    ),
)

EXCLUDED_TABLES: frozenset[Table] = frozenset({
    T.SESSION,
    T.ACCOUNT,
    T.VERIFICATION_TOKEN,
    T.INVITE,
    T.AUDIT_LOG,
    T.USAGE_EVENT,
    T.USAGE_ROLLUP,
    T.AI_INTERACTION_LOG,
    T.AI_LEARNED_PATTERN,
    T.PIPELINE_RUN,
    T.AGENT_RUN,
    T.ANALYSIS_RUN,
    T.USER_TASK,
    T.FAILED_CALL,
    T.PROCESSED_FILE,
    T.EXCLUDED_CALLER,
})

# (child, parent) edges dropped before sorting.  Each breaks a mutual
# reference; deferred constraints cover the temporary violation.
CYCLE_OVERRIDES: frozenset[tuple[Table, Table]] = frozenset({
    (T.DOMAIN, T.PLAYBOOK),        # Domain.onboardingPlaybookId <-> Playbook.domainId
    (T.CALLER, T.COHORT_GROUP),    # Caller.cohortGroupId <-> CohortGroup.ownerId
})


def validate_catalog(
    catalog: tuple[TableDef, ...] = CATALOG,
    excluded: frozenset[Table] = EXCLUDED_TABLES,
) -> None:
    """Check that every ``Table`` member is registered exactly once.

    Raises:
        CatalogError: On a duplicate entry, a member that is both catalogued
            and excluded, a member that is neither, a reference to a table
            outside the catalog, or a duplicate physical name.
    """
    seen: set[Table] = set()
    physical: dict[str, Table] = {}
    for table_def in catalog:
        if table_def.table in seen:
            raise CatalogError(f"Table {table_def.table} is registered twice")
        if table_def.table in excluded:
            raise CatalogError(f"Table {table_def.table} is both catalogued and excluded")
        seen.add(table_def.table)

        other = physical.setdefault(table_def.physical_name, table_def.table)
        if other is not table_def.table:
            raise CatalogError(
                f"Physical name '{table_def.physical_name}' used by both {other} and {table_def.table}"
            )

    for table_def in catalog:
        for ref in table_def.refs:
            if ref not in seen:
                raise CatalogError(
                    f"{table_def.table} references {ref}, which is not in the catalog"
                )

    missing = set(Table) - seen - excluded
    if missing:
        names = ", ".join(sorted(t.value for t in missing))
        raise CatalogError(f"Tables neither catalogued nor excluded: {names}")


validate_catalog()
