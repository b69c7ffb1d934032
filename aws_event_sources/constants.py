"""Constants shared by the event source reconcilers."""

# API Group
API_GROUP = "sources.triggermesh.io"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Adapter workload API groups
DEPLOYMENT_API_VERSION = "apps/v1"
KNATIVE_SERVING_API_GROUP = "serving.knative.dev"
KNATIVE_SERVICE_API_VERSION = f"{KNATIVE_SERVING_API_GROUP}/v1"

# Labels
LABEL_APP_NAME = "app.kubernetes.io/name"
LABEL_APP_INSTANCE = "app.kubernetes.io/instance"
LABEL_APP_COMPONENT = "app.kubernetes.io/component"
LABEL_APP_PART_OF = "app.kubernetes.io/part-of"
LABEL_APP_MANAGED_BY = "app.kubernetes.io/managed-by"

COMPONENT_ADAPTER = "adapter"
PART_OF = "aws-event-sources"
MANAGED_BY = "aws-event-sources-controller"

# Annotations set on Knative Services by the Knative Serving admission webhook.
# They are immutable once set.
ANNOTATION_SERVING_CREATOR = f"{KNATIVE_SERVING_API_GROUP}/creator"
ANNOTATION_SERVING_UPDATER = f"{KNATIVE_SERVING_API_GROUP}/lastModifier"
KNATIVE_SERVING_ANNOTATIONS = (ANNOTATION_SERVING_CREATOR, ANNOTATION_SERVING_UPDATER)

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Condition Types
COND_READY = "Ready"
COND_SINK_PROVIDED = "SinkProvided"
COND_DEPLOYED = "Deployed"
COND_SUBSCRIBED = "Subscribed"

# Condition statuses
STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"

# Condition Reasons
REASON_SINK_NOT_FOUND = "SinkNotFound"
REASON_ADAPTER_UNAVAILABLE = "AdapterUnavailable"
REASON_SNS_NO_URL = "AdapterURLMissing"
REASON_SNS_NO_CLIENT = "NoClient"
REASON_SNS_FAILED_SYNC = "FailedSync"
REASON_SNS_REJECTED = "Rejected"
REASON_SNS_UNSUBSCRIBED = "Unsubscribed"

# Event severities
EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"

# Event Reasons
EVENT_REASON_BAD_SINK_URI = "BadSinkURI"
EVENT_REASON_ADAPTER_CREATE = "CreateAdapter"
EVENT_REASON_ADAPTER_UPDATE = "UpdateAdapter"
EVENT_REASON_FAILED_ADAPTER_CREATE = "FailedAdapterCreate"
EVENT_REASON_FAILED_ADAPTER_UPDATE = "FailedAdapterUpdate"
EVENT_REASON_SUBSCRIBED = "Subscribed"
EVENT_REASON_UNSUBSCRIBED = "Unsubscribed"
EVENT_REASON_FAILED_SUBSCRIBE = "FailedSubscribe"
EVENT_REASON_FAILED_UNSUBSCRIBE = "FailedUnsubscribe"
EVENT_REASON_INTERNAL_ERROR = "InternalError"

# CloudEvents
AWS_EVENT_TYPE_PREFIX = "com.amazon"
