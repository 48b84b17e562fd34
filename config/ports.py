# File location: nssf/config/ports.py
# Network Function Port Assignments
# Ports of the NFs the NSSF talks to or is reached from

NF_PORTS = {
    # 5G Core
    "nrf": 8000,
    "amf": 9000,
    "nssf": 9010,
}


def get_port(nf_name: str) -> int:
    """Get the default port for a network function."""
    return NF_PORTS.get(nf_name.lower())
