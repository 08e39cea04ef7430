"""
Provisioning services: template resolution, session building,
boot orchestration, callbacks, iPXE rendering and the HTTP surface.
"""
