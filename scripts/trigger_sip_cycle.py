#!/usr/bin/env python3
"""
Manually trigger one SIP processing cycle.
Safe to run while the scheduler is live: investments already advanced by
the scheduled job are skipped.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings import get_scheduler_config
from pumpfunds.models.base import SessionLocal
from pumpfunds.core.sip_executor import SipExecutor
from pumpfunds.utils.logging import configure_logging

def trigger_sip_cycle():
    """Run the SIP executor once against the configured database."""
    print("🎯 Manually Triggering SIP Processing Cycle")
    print("=" * 60)

    sip_config = get_scheduler_config()['sip']

    try:
        executor = SipExecutor(
            SessionLocal,
            anchor_to_schedule=sip_config['anchor_to_schedule'],
            batch_limit=sip_config.get('batch_limit'),
        )
        result = executor.run_cycle()

        print(f"\n✓ SIP cycle completed!")
        print(f"\nResults:")
        print(f"  - Due: {result.due}")
        print(f"  - Executed: {result.executed}")
        print(f"  - Skipped: {result.skipped}")
        print(f"  - Invalid: {result.invalid}")
        print(f"  - Failed: {result.failed}")

        print("\n" + "=" * 60)
        return result.failed == 0

    except Exception as e:
        print(f"\n✗ Error running SIP cycle: {e}")
        import traceback
        traceback.print_exc()
        return False

if __name__ == "__main__":
    configure_logging()
    success = trigger_sip_cycle()
    sys.exit(0 if success else 1)
