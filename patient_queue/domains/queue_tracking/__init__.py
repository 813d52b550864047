"""
Queue Tracking Domain

Live queue position and wait-time estimates for patients who have arrived
for a same-day appointment.
"""
