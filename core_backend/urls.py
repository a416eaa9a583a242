# The HTTP surface is served by the desktop shell; the backend exposes no routes of its own.
urlpatterns = []
