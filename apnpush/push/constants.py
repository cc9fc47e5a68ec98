"""
Constants for the APNS HTTP/2 protocol.
"""

# APNS Hosts
APNS_PRODUCTION_HOST = "api.push.apple.com"
APNS_SANDBOX_HOST = "api.sandbox.push.apple.com"
APNS_PORT = 443

# APNS API path
APNS_DEVICE_PATH = "/3/device/{device_token}"

# JWT configuration
JWT_ALGORITHM = "ES256"
JWT_TOKEN_LIFETIME_SECONDS = 3600  # 1 hour
JWT_REFRESH_BUFFER_SECONDS = 60

# Dispatch pool
DEFAULT_CONCURRENCY = 50
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0

# Reject listener channel
REJECT_EVENT = "message.rejected"

# Base headers set on every request before authentication
CONTENT_TYPE_JSON = "application/json"

# Notification header limits
APNS_PRIORITY_IMMEDIATE = 10
APNS_PRIORITY_POWER_CONSIDERATION = 5
APNS_COLLAPSE_ID_MAX_BYTES = 64
APNS_PUSH_TYPES = {
    "alert",
    "background",
    "location",
    "voip",
    "complication",
    "fileprovider",
    "mdm",
    "liveactivity",
    "pushtotalk",
}

# APNS Error Codes (from reason header)
APNS_ERROR_CODES = {
    # Client errors
    "BadCollapseId": "The collapse identifier exceeds the maximum allowed size",
    "BadDeviceToken": "The specified device token is invalid",
    "BadExpirationDate": "The apns-expiration value is invalid",
    "BadMessageId": "The apns-id value is invalid",
    "BadPriority": "The apns-priority value is invalid",
    "BadTopic": "The apns-topic value is invalid",
    "DeviceTokenNotForTopic": "The device token doesn't match the specified topic",
    "DuplicateHeaders": "One or more headers are repeated",
    "IdleTimeout": "Idle timeout",
    "InvalidPushType": "The apns-push-type value is invalid",
    "MissingDeviceToken": "The device token is not specified in the request path",
    "MissingTopic": "The apns-topic header is missing from the request",
    "PayloadEmpty": "The message payload is empty",
    "TopicDisallowed": "Pushing to this topic is not allowed",

    # Token errors
    "BadCertificate": "The certificate is invalid",
    "BadCertificateEnvironment": "The client certificate is for the wrong environment",
    "ExpiredProviderToken": "The provider token is stale and a new token should be generated",
    "Forbidden": "The specified action is not allowed",
    "InvalidProviderToken": "The provider token is not valid or the token signature cannot be verified",
    "MissingProviderToken": "No provider certificate was used to connect to APNs",

    # Request errors
    "BadPath": "The request contained an invalid :path value",
    "MethodNotAllowed": "The specified :method value isn't POST",
    "ExpiredToken": "The device token has expired",

    # Device token errors
    "Unregistered": "The device token is no longer active for the topic",

    # Size errors
    "PayloadTooLarge": "The message payload is too large",

    # Server errors
    "TooManyProviderTokenUpdates": "The provider token has been updated too often",
    "TooManyRequests": "Too many requests were made consecutively to the same device token",
    "InternalServerError": "An internal server error occurred",
    "ServiceUnavailable": "The service is unavailable",
    "Shutdown": "The server is shutting down",
}
