"""
Static instructions served on GET /api/agent for LLM agents and tool builders.
"""


def render_agent_instructions(window_seconds: float = 30, max_requests: int = 1) -> str:
    window = int(window_seconds) if float(window_seconds).is_integer() else window_seconds
    plural = "request" if max_requests == 1 else "requests"
    return f"""# YouTube Transcript API - Agent Instructions

## Tool Definition
- **Name**: get_youtube_transcript
- **Description**: Fetches the full text transcript from a YouTube video

## Endpoint
```
GET /api/transcript/:videoId
```

## Authentication
```
Header: X-API-Key: <your-api-key>
```

## Parameters
| Name | Location | Required | Format | Description |
|------|----------|----------|--------|-------------|
| videoId | path | yes | 11 chars of A-Z a-z 0-9 - _ | YouTube video ID (e.g., dQw4w9WgXcQ) |

## Example Request
```bash
curl -H "X-API-Key: YOUR_KEY" https://host/api/transcript/dQw4w9WgXcQ
```

## Success Response (200)

**Headers:**
| Header | Type | Description |
|--------|------|-------------|
| Content-Type | string | Always `text/plain` |
| X-Video-Title | string | Title of the YouTube video (percent-encoded) |
| X-Video-Duration | number | Duration of the video in seconds |
| X-Video-Timestamp | string | ISO 8601 timestamp of when transcript was fetched |

**Body:** Plain text transcript of the video

## Error Responses
| Status | Meaning |
|--------|---------|
| 400 | Invalid video ID format |
| 401 | Missing or invalid API key |
| 404 | No transcript available for this video |
| 429 | Rate limit exceeded (see the Retry-After header) |
| 500 | Internal server error |
| 504 | Caption fetch timed out |

## Rate Limit
{max_requests} {plural} per {window} seconds per API key. The rate limit is tracked by the X-API-Key header value.

## Usage Tips
- Extract the video ID from YouTube URLs: `youtube.com/watch?v=VIDEO_ID` or `youtu.be/VIDEO_ID`
- Video IDs are exactly 11 characters (alphanumeric, hyphens, underscores)
- Check the X-Video-Duration header to estimate transcript length
- Handle 404 errors gracefully - not all videos have transcripts available
- On 429 or 504, wait and retry; nothing is retried server-side
"""
