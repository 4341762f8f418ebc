"""
Integration Layer

Hooks that notify external systems about aggregation runs.
"""

from .hooks import (
    CallbackHook,
    FileLogHook,
    HookEvent,
    HookPayload,
    HookResult,
    IntegrationHook,
    IntegrationHookManager,
    WebhookHook,
)

__all__ = [
    'CallbackHook',
    'FileLogHook',
    'HookEvent',
    'HookPayload',
    'HookResult',
    'IntegrationHook',
    'IntegrationHookManager',
    'WebhookHook'
]
