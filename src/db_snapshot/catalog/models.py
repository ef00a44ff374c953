"""Catalog models for the layered table registry.

Every table the snapshot engine knows about is named by a ``Table`` enum
member, so a typo in a table name is an ``AttributeError`` at import time
rather than a failed statement halfway through a restore.

Usage:
    from db_snapshot.catalog.models import Layer, Table, TableDef

    TableDef(table=Table.PARAMETER_TAG, layer=Layer.SYSTEM,
             refs=(Table.PARAMETER, Table.TAG))
"""

from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict


class CatalogError(Exception):
    """Raised when the table catalog is internally inconsistent."""

    pass


class Layer(IntEnum):
    """Ordinal tier of tables, from platform config to end-user data."""

    SYSTEM = 0
    SPECS = 1
    ORGANISATION = 2
    LEARNERS = 3


TOP_LAYER = Layer.LEARNERS


class Table(str, Enum):
    """Logical table names (the ORM model names)."""

    # Layer 0 - platform configuration
    SYSTEM_SETTING = "SystemSetting"
    AI_CONFIG = "AIConfig"
    AI_MODEL = "AIModel"
    INSTITUTION_TYPE = "InstitutionType"
    TAG = "Tag"
    PARAMETER = "Parameter"
    PARAMETER_TAG = "ParameterTag"
    PARAMETER_SCORING_ANCHOR = "ParameterScoringAnchor"
    PROMPT_TEMPLATE = "PromptTemplate"
    PROMPT_BLOCK = "PromptBlock"
    PROMPT_COMPOSITION_CONFIG = "PromptCompositionConfig"

    # Layer 1 - specs
    ANALYSIS_SPEC = "AnalysisSpec"
    ANALYSIS_TRIGGER = "AnalysisTrigger"
    ANALYSIS_ACTION = "AnalysisAction"
    ANALYSIS_PROFILE = "AnalysisProfile"
    COMPILED_ANALYSIS_SET = "CompiledAnalysisSet"
    PARAMETER_SET = "ParameterSet"
    PARAMETER_SET_PARAMETER = "ParameterSetParameter"
    PROMPT_SLUG = "PromptSlug"
    PROMPT_SLUG_PARAMETER = "PromptSlugParameter"
    PROMPT_SLUG_RANGE = "PromptSlugRange"
    BDD_FEATURE_SET = "BDDFeatureSet"
    BDD_UPLOAD = "BDDUpload"
    BEHAVIOR_TARGET = "BehaviorTarget"

    # Layer 2 - organisation and content
    INSTITUTION = "Institution"
    USER = "User"
    DOMAIN = "Domain"
    SUBJECT = "Subject"
    SUBJECT_DOMAIN = "SubjectDomain"
    CONTENT_SOURCE = "ContentSource"
    SUBJECT_SOURCE = "SubjectSource"
    CONTENT_ASSERTION = "ContentAssertion"
    CONTENT_QUESTION = "ContentQuestion"
    CONTENT_VOCABULARY = "ContentVocabulary"
    MEDIA_ASSET = "MediaAsset"
    SUBJECT_MEDIA = "SubjectMedia"
    CURRICULUM = "Curriculum"
    PLAYBOOK = "Playbook"
    PLAYBOOK_ITEM = "PlaybookItem"
    PROMPT_STACK = "PromptStack"
    PROMPT_STACK_ITEM = "PromptStackItem"
    AGENT_INSTANCE = "AgentInstance"
    KNOWLEDGE_DOC = "KnowledgeDoc"
    KNOWLEDGE_CHUNK = "KnowledgeChunk"
    KNOWLEDGE_ARTIFACT = "KnowledgeArtifact"

    # Layer 3 - learners
    CALLER = "Caller"
    CALLER_IDENTITY = "CallerIdentity"
    CALLER_ATTRIBUTE = "CallerAttribute"
    COHORT_GROUP = "CohortGroup"
    COHORT_PLAYBOOK = "CohortPlaybook"
    CALLER_PLAYBOOK = "CallerPlaybook"
    CALL = "Call"
    CALL_MESSAGE = "CallMessage"
    CALL_SCORE = "CallScore"
    CALL_TARGET = "CallTarget"
    CALL_ACTION = "CallAction"
    CALLER_MEMORY = "CallerMemory"
    CALLER_MEMORY_SUMMARY = "CallerMemorySummary"
    CALLER_PERSONALITY = "CallerPersonality"
    CALLER_PERSONALITY_PROFILE = "CallerPersonalityProfile"
    PERSONALITY_OBSERVATION = "PersonalityObservation"
    CALLER_TARGET = "CallerTarget"
    BEHAVIOR_MEASUREMENT = "BehaviorMeasurement"
    REWARD_SCORE = "RewardScore"
    GOAL = "Goal"
    COMPOSED_PROMPT = "ComposedPrompt"
    ONBOARDING_SESSION = "OnboardingSession"
    CONVERSATION_ARTIFACT = "ConversationArtifact"

    # Never snapshotted: sessions, audit, usage and derived data
    SESSION = "Session"
    ACCOUNT = "Account"
    VERIFICATION_TOKEN = "VerificationToken"
    INVITE = "Invite"
    AUDIT_LOG = "AuditLog"
    USAGE_EVENT = "UsageEvent"
    USAGE_ROLLUP = "UsageRollup"
    AI_INTERACTION_LOG = "AIInteractionLog"
    AI_LEARNED_PATTERN = "AILearnedPattern"
    PIPELINE_RUN = "PipelineRun"
    AGENT_RUN = "AgentRun"
    ANALYSIS_RUN = "AnalysisRun"
    USER_TASK = "UserTask"
    FAILED_CALL = "FailedCall"
    PROCESSED_FILE = "ProcessedFile"
    EXCLUDED_CALLER = "ExcludedCaller"

    def __str__(self) -> str:
        return self.value


class ScopeFilter(BaseModel):
    """Rows to leave out of a snapshot that excludes the top layer.

    Some tables below the top layer hold a mix of shared rows and rows that
    logically belong to end users (e.g. caller-scoped targets).
    """

    model_config = ConfigDict(frozen=True)

    column: str
    excluded_values: frozenset[str]

    def keeps(self, row: dict) -> bool:
        """True if *row* belongs in a snapshot without the top layer."""
        return row.get(self.column) not in self.excluded_values


class TableDef(BaseModel):
    """Catalog entry for one snapshotted table."""

    model_config = ConfigDict(frozen=True)

    table: Table
    layer: Layer
    refs: tuple[Table, ...] = ()                # tables this one references via FK
    physical: str | None = None                 # storage name when it differs
    scope_filter: ScopeFilter | None = None     # applied when the top layer is excluded

    @property
    def physical_name(self) -> str:
        return self.physical or self.table.value
