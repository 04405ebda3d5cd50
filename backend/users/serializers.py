from django.contrib.auth.models import User
from rest_framework import serializers


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "username", "email"]


class RegisterSerializer(serializers.ModelSerializer):
    username = serializers.CharField(max_length=150, required=False, allow_blank=True)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6)

    class Meta:
        model = User
        fields = ["username", "email", "password"]

    def validate(self, attrs):
        # 未填写用户名时取邮箱 @ 前的部分
        username = (attrs.get("username") or "").strip() or attrs["email"].split("@")[0]
        if User.objects.filter(username=username).exists():
            raise serializers.ValidationError({"username": "用户名已存在"})
        attrs["username"] = username
        return attrs

    def create(self, validated_data):
        return User.objects.create_user(
            username=validated_data["username"],
            email=validated_data["email"],
            password=validated_data["password"],
        )
