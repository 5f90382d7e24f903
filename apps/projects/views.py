from rest_framework.views import APIView
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from .serializers import ProjectSerializer, ProgressUpdateSerializer
from . import services
from core.constants import FINAL_PROGRESS_LEVEL
from core.utils import IsEmployer, IsFreelancer, success_response


class ProgressLevelsView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="The progress ladder shared by progress tracking and milestone payments.",
        responses={200: openapi.Schema(type=openapi.TYPE_OBJECT)}
    )
    def get(self, request):
        return success_response(services.get_progress_levels())


class FreelancerActiveProjectsView(APIView):
    permission_classes = [IsAuthenticated, IsFreelancer]

    @swagger_auto_schema(responses={200: ProjectSerializer(many=True)})
    def get(self, request):
        projects = services.list_freelancer_active_projects(request.user)
        return success_response(ProjectSerializer(projects, many=True).data)


class FreelancerRecentProjectsView(APIView):
    permission_classes = [IsAuthenticated, IsFreelancer]

    @swagger_auto_schema(
        operation_description="The ten most recently allocated projects, completed or not.",
        responses={200: ProjectSerializer(many=True)}
    )
    def get(self, request):
        projects = services.list_freelancer_recent_projects(request.user)
        return success_response(ProjectSerializer(projects, many=True).data)


class RecruiterActiveProjectsView(APIView):
    permission_classes = [IsAuthenticated, IsEmployer]

    @swagger_auto_schema(responses={200: ProjectSerializer(many=True)})
    def get(self, request):
        projects = services.list_recruiter_active_projects(request.user)
        return success_response(ProjectSerializer(projects, many=True).data)


class ProjectDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Project details for the poster, the allocated freelancer or an admin.",
        responses={200: ProjectSerializer, 403: 'Forbidden', 404: 'Not Found'}
    )
    def get(self, request, pk):
        return success_response(ProjectSerializer(services.get_project(pk, request.user)).data)


class ProjectProgressView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Advance the project to a higher progress level (allocated freelancer only).",
        request_body=ProgressUpdateSerializer,
        responses={200: ProjectSerializer, 400: 'Invalid progress level', 403: 'Forbidden',
                   404: 'Not Found', 409: 'Completed or moving backwards'}
    )
    def put(self, request, pk):
        serializer = ProgressUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = services.update_progress(pk, request.user, serializer.validated_data['progress_level'])
        if project.progress_level == FINAL_PROGRESS_LEVEL:
            message = 'Project completed successfully!'
        else:
            message = 'Project progress updated successfully'
        return success_response(ProjectSerializer(project).data, message=message)
