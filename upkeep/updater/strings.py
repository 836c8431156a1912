"""User-facing messages. Profiles may override any key via ``strings:``."""

DEFAULT_STRINGS: dict[str, str] = {
    "license_key_empty_message": "License key is not available.",
    "check_update_link_text": "Check Update",
    "rollback_changelog_title": "Changelog",
    "rollback_action_running": "Rolling back",
    "rollback_action_button": "Rollback",
    "rollback_cancel_button": "Cancel",
    "rollback_current_version": "Current version",
    "rollback_last_updated": "Last updated %s ago.",
    "rollback_view_changelog": "View Changelog",
    "rollback_page_title": "Rollback Plugin",
    "rollback_link_text": "Rollback",
    "rollback_failed": "Rollback failed.",
    "rollback_success": "Rollback success: %s rolled back to version %s.",
    "rollback_plugin_not_available": "Plugin is not available.",
    "rollback_no_access": "Sorry, you are not allowed to rollback plugins for this site.",
    "rollback_invalid_nonce": "The link you followed has expired.",
    "rollback_not_available": "Rollback is not available for plugin: %s",
    "rollback_no_target_version": "Plugin version not selected.",
    "rollback_version_not_found": "Version %s is not available for rollback.",
    "rollback_untrusted_package": "Package for version %s is not from a trusted host.",
    "rollback_server_unreachable": "Could not reach the update server.",
    "rollback_filesystem_unavailable": "Unable to connect to the filesystem. Please confirm your credentials.",
    "rollback_reactivation_failed": "%s was rolled back to version %s but could not be reactivated: %s",
    "incompatible_version_notice": (
        "You are using an incompatible version of <strong>%s - (%s)</strong>. "
        "Please upgrade to version <strong>%s</strong> or upper."
    ),
}


def localize_strings(overrides: dict[str, str] = None) -> dict[str, str]:
    """Defaults with ``overrides`` applied. Unknown keys are kept as-is."""
    return {**DEFAULT_STRINGS, **(overrides or {})}
