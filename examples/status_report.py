#!/usr/bin/env python3
"""
Log in to an access point, print its status and back up its configuration.
"""

import sys

from ubntkit import ConnectStatus, TransferStatus, UBNTDevice


def main():
    host = sys.argv[1] if len(sys.argv) > 1 else "192.168.1.20"
    password = sys.argv[2] if len(sys.argv) > 2 else "ubnt"

    with UBNTDevice(host, username="ubnt") as device:
        status = device.connect_password(password)
        if status is not ConnectStatus.OK:
            # e.g. the password was changed: try the factory default on a fresh session
            device.renew_session()
            status = device.connect_password("ubnt")
        if status is not ConnectStatus.OK:
            print(f"Login to {host} failed: {status.name}")
            return 1

        info = device.mca_status()
        if info:
            print(f"{info.get('deviceName')} ({info.get('platform')})")
            print(f"  Firmware: {info.get('firmwareVersion')}")
            print(f"  Uptime:   {info.get('uptime')}s")
            print(f"  Clients:  {info.get('wlanConnections')}")

        print("\nStations:")
        print(device.wstalist() or "  (none)")

        backup = device.copy_config()
        if backup.status in (TransferStatus.INIT_FAILED, TransferStatus.NO_FILE):
            print(f"\nCould not back up system.cfg: {backup.message or backup.status.value}")
            return 1
        if not backup.ok:
            print(
                f"\nWarning: transfer {backup.status.value}, "
                f"got {backup.nbytes} of {backup.size} bytes of system.cfg"
            )
        with open(f"{host}-system.cfg", "wb") as f:
            f.write(backup.data)
        print(f"\nSaved {backup.nbytes} bytes to {host}-system.cfg")

    return 0


if __name__ == "__main__":
    sys.exit(main())
