"""DM reply templates.

Templates are static text with named placeholders. render() rejects params a
template does not declare so user data cannot leak into the wrong message.
"""

from typing import Any

TEMPLATES: dict[str, dict[str, Any]] = {
    "welcome": {
        "text": (
            "👋 Welcome to urdigest! I'll turn your saved Instagram posts into a daily "
            "email digest.\n\nFirst, what's your email address?"
        ),
        "allowed_params": [],
    },
    "welcome_back": {
        "text": (
            "Welcome back to urdigest! What's your email address so we can send you "
            "your daily digest?"
        ),
        "allowed_params": [],
    },
    "invalid_email": {
        "text": (
            "That doesn't look like a valid email address. Please send your email "
            "address (e.g., you@example.com)"
        ),
        "allowed_params": [],
    },
    "email_save_failed": {
        "text": "Something went wrong. Please try sending your email again.",
        "allowed_params": [],
    },
    "ask_time": {
        "text": (
            "Got it! What time would you like your daily digest sent? "
            "(e.g., 8:00 AM, 7 PM, 18:00)"
        ),
        "allowed_params": [],
    },
    "invalid_time": {
        "text": "I couldn't understand that time. Please try again (e.g., 8:00 AM, 7 PM, 18:00)",
        "allowed_params": [],
    },
    "time_save_failed": {
        "text": "Something went wrong. Please try sending the time again.",
        "allowed_params": [],
    },
    "onboarded": {
        "text": (
            "You're all set! 🎉 Now just send me any Instagram posts and I'll include "
            "them in your daily digest.\n\nTo share a post, open it in Instagram and use "
            "the share button to send it to me here."
        ),
        "allowed_params": [],
    },
    "post_added": {
        "text": "✅ Added to your next digest!",
        "allowed_params": [],
    },
    "posts_added": {
        "text": "✅ Added {count} posts to your next digest!",
        "allowed_params": ["count"],
    },
    "post_already_saved": {
        "text": "👍 That's already in your next digest.",
        "allowed_params": [],
    },
    "help": {
        "text": (
            "📬 urdigest Help:\n"
            "• Share Instagram posts with me to add them to your digest\n"
            '• Send "status" to check your digest info\n'
            '• Send "pause" to pause digests\n'
            '• Send "resume" to resume digests'
        ),
        "allowed_params": [],
    },
    "status": {
        "text": (
            "📊 Your urdigest status:\n"
            "• Email: {email}\n"
            "• Digest time: {digest_time}\n"
            "• Digests enabled: {enabled}\n"
            "• Posts saved: {posts_saved}\n"
            "• Digests sent: {digests_sent}"
        ),
        "allowed_params": ["email", "digest_time", "enabled", "posts_saved", "digests_sent"],
    },
    "paused": {
        "text": '⏸️ Digests paused. Send "resume" to start them again.',
        "allowed_params": [],
    },
    "resumed": {
        "text": "▶️ Digests resumed! You'll get your next digest at your scheduled time.",
        "allowed_params": [],
    },
    "command_failed": {
        "text": "Something went wrong. Please try again in a moment.",
        "allowed_params": [],
    },
    "share_hint": {
        "text": (
            "To add a post to your digest, share it with me using Instagram's share "
            'button. Send "help" for more options.'
        ),
        "allowed_params": [],
    },
}


def render(template_key: str, params: dict[str, Any] | None = None) -> str:
    """Render template with params.

    Raises:
        ValueError: If template_key is unknown or params has undeclared keys.
    """
    if template_key not in TEMPLATES:
        raise ValueError(f"Unknown template: {template_key}")

    template = TEMPLATES[template_key]
    params = params or {}
    extras = set(params) - set(template["allowed_params"])
    if extras:
        raise ValueError(f"Disallowed params for {template_key}: {extras}")

    return template["text"].format(**params)
