from membership.profiles.service import ProfileService, profile_service

__all__ = ["ProfileService", "profile_service"]
