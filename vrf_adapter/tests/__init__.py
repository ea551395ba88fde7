"""
vrf_adapter.tests
-----------------
Test package for the VRF adapter. Everything runs offline: drand is replaced
by fake beacon sources or fake HTTP sessions, the chain by LocalChain.
"""
