#!/usr/bin/env python3
"""
Configuration validation script for Discogram.

This script validates the configuration without starting the relay,
useful for checking environment setup and troubleshooting configuration issues.
"""

import sys
from pathlib import Path

# Add src to path so we can import discogram modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from discogram.core.config import Settings  # noqa: E402
from discogram.core.errors import ConfigurationError, StoreError  # noqa: E402
from discogram.core.infrastructure.store import SubscriptionStore  # noqa: E402
from discogram.core.models import RoutingPolicy  # noqa: E402
from discogram.logging import configure_logging  # noqa: E402


def main():
    """Main validation function."""
    print("🔍 Discogram Configuration Validator")
    print("=" * 50)

    try:
        print("📋 Loading configuration...")
        settings = Settings()

        configure_logging(settings.log_level)

        print("✅ Configuration loaded successfully")

        print("\n🔧 Validating environment...")
        settings.validate_environment()

        print(f"\n🔀 Routing policy: {settings.routing_policy.value}")
        if settings.routing_policy == RoutingPolicy.ALLOWLIST:
            channel_ids = settings.initial_channel_ids()
            print(f"   - Allow-list scope: {settings.allowlist_scope.value}")
            print(f"   - Configured channels: {', '.join(channel_ids) if channel_ids else 'none (use /add)'}")
        elif settings.routing_policy == RoutingPolicy.GUILD:
            print(f"   - Broadcast marker: {settings.broadcast_marker!r}")
            print(f"   - First message lookback: {settings.first_message_lookback}")

        print("\n🗄️  Checking subscription store...")
        try:
            store = SubscriptionStore(db_path=settings.database_path)
        except StoreError as e:
            print(f"❌ Subscription store error: {e}")
            return 1
        try:
            print(f"✅ Subscription store: {settings.database_path}")
            print(f"   - Registered chats: {len(store.all_conversations())}")
            print(f"   - Selectors: {len(store.all_selectors())}")
        finally:
            store.close()

        print("\n📁 Checking directory permissions...")
        try:
            Path(settings.update_id_file_path).parent.mkdir(parents=True, exist_ok=True)
            print(f"✅ Update offset directory: {Path(settings.update_id_file_path).parent}")
        except OSError as e:
            print(f"⚠️  Update offset directory issue: {e}")

        print("\n🎉 Configuration validation completed successfully!")
        print("\nYour Discogram relay is ready to start.")
        return 0

    except ConfigurationError as e:
        print(f"\n❌ Configuration Error: {e}")
        print("\nPlease fix the configuration issues and try again.")
        return 1
    except Exception as e:
        print(f"\n💥 Unexpected error during validation: {e}")
        print("\nThis might indicate a bug or system issue.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
