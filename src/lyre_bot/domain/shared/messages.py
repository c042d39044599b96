"""Every user-facing string and log template in one place."""

from __future__ import annotations


class ErrorMessages:
    """Text carried by DomainError and validation failures."""

    # Ids
    INVALID_SNOWFLAKE = "Snowflake ids are positive integers"
    SNOWFLAKE_TOO_LARGE = "Snowflake id does not fit in 64 bits"
    SNOWFLAKE_NOT_NUMERIC = "Discord snowflake ID is not numeric: {value!r}"

    # Content Id Validation Errors
    EMPTY_CONTENT_ID = "Content ID cannot be empty"
    INVALID_CONTENT_ID = "Content ID must not contain path separators: {value!r}"

    # Time
    TIMEZONE_REQUIRED_UTC_DATETIME = "UtcDateTime needs an aware datetime"

    # Settings Validation Errors
    INVALID_DATABASE_URL = "Database URL must start with sqlite://"
    INVALID_LOG_LEVEL = "Unknown log level {level}; expected one of {valid_levels}"
    INVALID_DOWNLOAD_TIMEOUT = "DOWNLOAD_TIMEOUT_SECONDS must be a positive number"

    # Extractor Acquisition Errors
    NO_CACHE_DIR = "Could not determine a user cache directory for the yt-dlp binary"
    RELEASE_REQUEST_FAILED = "Failed to query yt-dlp releases: {error}"
    RELEASE_HTTP_STATUS = "yt-dlp release request returned HTTP {status}"
    NO_MATCHING_ASSET = "No yt-dlp release asset named {asset!r}"
    ASSET_DOWNLOAD_FAILED = "Failed to download yt-dlp asset {asset!r}: {error}"
    ASSET_WRITE_FAILED = "Failed to install yt-dlp to {path}: {error}"

    # Metadata Extraction Errors
    EXTRACTOR_SPAWN_FAILED = "Failed to start yt-dlp: {error}"
    EXTRACTOR_EXITED = "yt-dlp exited with status {code}: {stderr}"
    EXTRACTOR_EMPTY_OUTPUT = "yt-dlp printed no {field} for {url}"

    # Download Errors
    DOWNLOAD_EXIT_STATUS = "yt-dlp exited with status {code}"
    DOWNLOAD_NO_OUTPUT = "yt-dlp produced no mp3 file in {path}"
    DOWNLOAD_TIMEOUT = "Download did not finish within {seconds}s"
    DOWNLOAD_DIR_FAILED = "Failed to prepare download directory {path}: {error}"
    DOWNLOAD_NOT_STARTED = "Download job for {url} was never started"

    # Voice Errors
    JOIN_FAILED = "Failed to join voice channel {channel_id} after {attempts} attempts"
    VOICE_NOT_CONNECTED = "Not connected to voice in guild {guild_id}"
    PLAYBACK_START_FAILED = "Could not start playback: {error}"

    # Startup
    DISCORD_TOKEN_REQUIRED = "No bot token: set DISCORD_TOKEN (or DISCORD__TOKEN)"
    CONTAINER_NOT_FOUND = "Bot has no container attached"


class LogTemplates:
    """%-style templates; pass values as logger arguments, never pre-format."""

    # Database Lifecycle
    DATABASE_INITIALIZED = "SQLite store ready at %s"
    DATABASE_CLOSED = "SQLite store closed"

    # Cleanup Operations
    CLEANUP_STARTED = "Cleanup loop started"
    CLEANUP_STOPPED = "Cleanup loop stopped"
    CLEANUP_ALREADY_RUNNING = "Cleanup loop already running"
    CLEANUP_CYCLE_RUNNING = "Cleanup pass starting"
    CLEANUP_COMPLETED = "Cleanup completed: %s history entries, %s cache entries, %s files"
    CLEANUP_HISTORY_FAILED = "History cleanup failed: %r"
    CLEANUP_CACHE_FAILED = "Cache cleanup failed: %r"
    CLEANUP_FILE_REMOVE_FAILED = "Failed to remove cached file %s: %r"

    # Cache Operations
    CACHE_RECORDED = "Recorded cache entry %s (%s bytes)"
    CACHE_RECORD_FAILED = "Failed to record cache entry for %s: %r"
    CACHE_TOUCH_FAILED = "Failed to refresh cache entry %s: %r"
    CACHE_TITLE_FAILED = "Failed to store cached title for %s: %r"

    # Extractor Acquisition
    EXTRACTOR_ON_PATH = "Using yt-dlp from PATH: %s"
    EXTRACTOR_CACHED = "Using cached yt-dlp binary: %s"
    EXTRACTOR_DOWNLOADING = "Downloading yt-dlp release asset %s"
    EXTRACTOR_INSTALLED = "Installed yt-dlp to %s"
    EXTRACTION_FAILED = "yt-dlp --print %s failed for %s: %s"

    # Download Jobs
    DOWNLOAD_STARTED = "Downloading %s into %s"
    DOWNLOAD_CACHE_HIT = "Cache hit for %s: %s"
    DOWNLOAD_ID_FALLBACK = "Could not extract id for %s, using %s: %s"
    DOWNLOAD_FINISHED = "Downloaded %s to %s"
    DOWNLOAD_FAILED = "Download of %s failed: %s"
    DOWNLOAD_TIMED_OUT = "Download of %s exceeded %ss, killing yt-dlp"
    DOWNLOAD_MOVE_FAILED = "Failed to move %s into the cache, copying: %r"
    DOWNLOAD_COPY_FAILED = "Failed to copy %s into the cache, using job file: %r"
    DOWNLOAD_JOB_DIR_CLEANUP_FAILED = "Failed to remove job directory %s: %r"

    # Voice/Audio Operations
    GUILD_NOT_FOUND = "Guild %s is not visible to the bot"
    CHANNEL_NOT_VOICE = "Channel %s cannot be joined for voice"
    VOICE_CONNECTED = "Joined voice channel %s in %s"
    VOICE_DISCONNECTED = "Left voice in guild %s"
    VOICE_CONNECTION_TIMEOUT = "Voice connect to %s timed out"
    VOICE_NO_PERMISSION = "Missing Connect permission for channel %s"
    VOICE_CLIENT_ERROR = "Voice client refused connect: %r"
    VOICE_NOT_CONNECTED = "No voice client for guild %s"
    VOICE_JOIN_REQUESTED = "Recorded join request for channel %s in guild %s"
    VOICE_RECORD_DELETED = "Deleted voice record for guild %s"
    VOICE_ALREADY_CONNECTED = "Already connected in guild %s (channel %s), reusing session"
    VOICE_JOIN_ATTEMPT = "Joining channel %s in guild %s (attempt %s/%s)"
    VOICE_JOIN_RETRY = "Join attempt %s failed in guild %s, retrying in %sms"
    VOICE_JOIN_SUCCEEDED = "Joined channel %s in guild %s after %s attempt(s)"
    VOICE_JOIN_EXHAUSTED = "Giving up joining channel %s in guild %s after %s attempts"
    VOICE_RECORD_UPDATE_FAILED = "Failed to update voice record for guild %s: %r"

    # Reconciler
    RECONCILER_STARTED = "Voice reconciler started"
    RECONCILER_STOPPED = "Voice reconciler stopped"
    RECONCILER_ALREADY_RUNNING = "Voice reconciler is already running"
    RECONCILER_TICK_FAILED = "Voice reconciler tick failed: %r"
    RECONCILER_PARSE_FAILED = "Unparsable voice record (guild=%r, channel=%r), failure %s/%s"
    RECONCILER_QUARANTINED = "Removed unparsable voice record for guild %r"
    RECONCILER_ALREADY_BOUND = "Guild %s already bound to channel %s"
    RECONCILER_STALE_SKIPPED = "Skipping stale join request for guild %s (age %ss)"
    RECONCILER_JOIN_FAILED = "Reconciler could not join guild %s: %s; removing request"

    # Playback Operations
    PLAYBACK_STARTED = "Now playing '%s' in guild %s"
    PLAYBACK_STOPPED = "Playback stopped in guild %s"
    PLAYBACK_SKIPPED = "Skipped current file in guild %s"
    PLAYBACK_ERROR = "Guild %s playback error: %s"
    PLAYBACK_FAILED_START = "Voice driver would not start the file: %s"
    PLAYBACK_NO_CALLBACK = "Track ended in guild %s with no track-end hook registered"
    PLAYBACK_CALLING_CALLBACK = "Running track-end hook for guild %s"
    PLAYBACK_CALLBACK_ERROR = "Track-end hook failed for guild %s: %s"
    PLAYBACK_IGNORING_CALLBACK = "End of file in guild %s came from stop; hook skipped"
    PLAYBACK_FILE_QUEUED = "Queued '%s' in guild %s (%s waiting)"
    PLAYBACK_FILE_SKIPPED = "Skipping '%s' in guild %s: %s"

    # Track Completion
    TRACK_ENDED = "File finished in guild %s (error: %s)"
    TRACK_COMPLETION_ADVANCE_FAILED = "Failed to advance queue in guild %s: %r"
    QUEUE_EXHAUSTED = "Queue exhausted in guild %s, disconnecting"
    QUEUE_EXHAUSTED_SESSION_KEPT = "Guild %s is playing again after its queue emptied; staying"
    QUEUE_FINISHED_NOTICE_FAILED = "Could not post the queue-finished notice in channel %s: %s"
    STATUS_UPDATE_FAILED = "Failed to update playing status for guild %s: %r"

    # Queue Operations
    QUEUE_ENQUEUED = "Queued '%s' at position %s in guild %s"
    QUEUE_ADVANCED = "Advanced queue in guild %s"
    QUEUE_CLEARED = "Removed %s queue rows in guild %s"
    QUEUE_POSITION_CONFLICT = "Queue position conflict in guild %s (attempt %s), retrying"
    QUEUE_TABLE_LOCKED = "Queue table locked in guild %s (attempt %s), retrying"

    # Play Requests
    PLAY_REQUESTED = "Play requested for %s in guild %s by %s"
    PLAY_TITLE_CACHED = "Using cached title for %s: %s"
    PLAY_TITLE_FAILED = "Could not extract title for %s: %s"
    PLAY_PROGRESS_CALLBACK_FAILED = "Progress callback failed for guild %s: %r"
    PLAY_HISTORY_FAILED = "Failed to log queue history for guild %s: %r"
    PLAY_QUEUE_ADD_FAILED = "Failed to add track to queue store for guild %s: %s"

    # History
    HISTORY_RECORDED = "History row written for %s in guild %s"
    HISTORY_OLD_CLEANED = "Deleted %s old history rows"

    # Metrics
    METRICS_STARTED = "Metrics collector started"
    METRICS_STOPPED = "Metrics collector stopped"
    METRICS_SCAN_FAILED = "Download folder scan failed: %r"
    METRICS_QUEUE_REFRESH_FAILED = "Failed to refresh queue length: %r"

    # Application Lifecycle
    BOT_STARTING = "Starting Lyre Bot in {environment} mode"
    BOT_SETUP = "Running setup hook"
    BOT_CONTAINER_INITIALIZED = "Container ready"
    BOT_CONTAINER_INIT_FAILED = "Container startup failed: %s"
    BOT_SETUP_COMPLETE = "Setup hook finished"
    BOT_STARTING_RUN = "Connecting to Discord"
    BOT_STOPPED = "Bot stopped"
    BOT_KEYBOARD_INTERRUPT = "Interrupted; shutting down"
    BOT_FATAL_ERROR = "Bot crashed: %s"
    BOT_SHUTTING_DOWN = "Closing bot"
    BOT_CONTAINER_SHUTDOWN = "Container closed"
    BOT_CONTAINER_SHUTDOWN_ERROR = "Container close failed: %s"
    BOT_SHUTDOWN_COMPLETE = "Bot closed"
    BOT_SHUTDOWN_TIMEOUT = "Graceful shutdown did not finish within %ss"
    BOT_VOICE_DISCONNECT_FAILED = "Failed to disconnect voice client during shutdown: %r"
    BOT_READY = "Logged in as %s (%s)"
    BOT_CONNECTED_GUILDS = "Present in %s guild(s)"

    # Bot Cog Management
    BOT_COG_LOADED = "Loaded extension %s"
    BOT_COG_LOAD_FAILED = "Extension %s failed to load: %s"

    # Bot Command Sync
    BOT_SYNCED_GLOBAL = "Synced %s application command(s)"
    BOT_SYNC_GLOBAL_FAILED = "Application command sync failed: %s"

    # Bot Voice Record Management
    BOT_STALE_VOICE_RECORDS_CLEARED = "Cleared %s stale voice records on startup"
    BOT_NO_STALE_VOICE_RECORDS = "No stale voice records found on startup"
    BOT_STALE_VOICE_RECORDS_FAILED = "Failed to clear stale voice records: %s"

    # Bot Background Jobs
    BOT_BACKGROUND_START_FAILED = "Failed to start %s: %s"
    BOT_BACKGROUND_STOP_ERROR = "Error stopping %s: %s"

    # Bot Error Handling
    BOT_SLASH_COMMAND_ERROR = "/%s raised: %s"
    BOT_ERROR_MESSAGE_SEND_FAILED = "Could not deliver the error reply"


class DiscordUIMessages:
    """Text sent to Discord users."""

    # Progress
    PROGRESS_DOWNLOADING = "Downloading… {bar} {percent}%"

    # Action Messages
    ACTION_SKIPPED = "⏭️ Skipped to next."
    ACTION_STOPPED = "⏹️ Stopped, cleared queue, and disconnected."

    # Error Messages
    ERROR_PLAY_FAILED = "❌ {reason}"
    ERROR_COMMAND_FAILED_SEE_LOGS = "❌ Command failed. See logs."

    # State Messages
    STATE_NOT_CONNECTED = "Not connected."
    STATE_NOTHING_TO_SKIP = "Nothing to skip."
    STATE_QUEUE_EMPTY = "Nothing is queued."
    STATE_MUST_BE_IN_VOICE = "Join a voice channel first."
    STATE_SERVER_ONLY = "This command only works inside a server."
    STATE_VERIFY_VOICE_FAILED = "Could not read your voice state."
    STATE_BOT_NOT_MEMBER = "I'm not a member of this server. Please re-invite me."
    STATE_MISSING_CONNECT = (
        "I don't have permission to connect to your voice channel. "
        "Please ensure I have the 'Connect' permission."
    )
    STATE_MISSING_SPEAK = (
        "I don't have permission to speak in your voice channel. "
        "Please ensure I have the 'Speak' permission."
    )

    # Embed Titles
    EMBED_NOW_PLAYING = "🎵 Now Playing"
    EMBED_QUEUED = "🎵 Added to Queue"
    EMBED_QUEUE = "📋 Queue ({total_tracks} tracks)"
    EMBED_QUEUE_FOOTER = "Queue position: {position} | Duration: {duration}"
    EMBED_QUEUE_MORE = "…and {count} more"
    EMBED_QUEUE_FINISHED = "🎵 Queue Finished"
    EMBED_QUEUE_FINISHED_DESCRIPTION = (
        "All songs have finished playing. Disconnected from voice channel."
    )
