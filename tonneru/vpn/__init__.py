"""WireGuard status and control, the privileged helper runner and the kill switch."""