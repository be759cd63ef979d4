from django.contrib.auth.models import Group, Permission
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .models import User, Setting, AuditLog
from .roles import ALL_ROLES, get_portal, get_user_roles


class UserSerializer(serializers.ModelSerializer):
    roles = serializers.SerializerMethodField()
    portal = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'is_active',
                  'must_change_password', 'roles', 'portal', 'last_login', 'created_at', 'updated_at']
        read_only_fields = ['must_change_password', 'last_login', 'created_at', 'updated_at']

    def get_roles(self, obj):
        return get_user_roles(obj)

    def get_portal(self, obj):
        return get_portal(obj)


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)
    roles = serializers.ListField(child=serializers.ChoiceField(choices=ALL_ROLES), required=False, default=list)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name', 'phone', 'roles']

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        from .accounts import set_user_roles

        validated_data.pop('password_confirm')
        roles = validated_data.pop('roles', [])
        password = validated_data.pop('password')
        user = User.objects.create(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        set_user_roles(user, roles)
        return user


class ProfileSerializer(serializers.ModelSerializer):
    roles = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'roles']
        read_only_fields = ['id', 'username']

    def get_roles(self, obj):
        return get_user_roles(obj)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True)
    new_password_confirm = serializers.CharField(write_only=True)

    def validate_current_password(self, value):
        user = self.context['request'].user
        if not user.check_password(value):
            raise serializers.ValidationError('Current password is incorrect.')
        return value

    def validate(self, attrs):
        if attrs['new_password'] != attrs['new_password_confirm']:
            raise serializers.ValidationError({'new_password_confirm': "Passwords don't match"})
        if attrs['new_password'] == attrs['current_password']:
            raise serializers.ValidationError({'new_password': 'New password must differ from the current password.'})
        validate_password(attrs['new_password'], self.context['request'].user)
        return attrs


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()
    new_password = serializers.CharField(write_only=True)
    new_password_confirm = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if attrs['new_password'] != attrs['new_password_confirm']:
            raise serializers.ValidationError({'new_password_confirm': "Passwords don't match"})
        return attrs


class RolesAssignSerializer(serializers.Serializer):
    roles = serializers.ListField(child=serializers.ChoiceField(choices=ALL_ROLES), allow_empty=True)


class SettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Setting
        fields = ['id', 'key', 'value', 'description', 'updated_at']


class AuditLogSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'username', 'action', 'model_name', 'object_id', 'object_name',
                  'changes', 'ip_address', 'created_at']


class PermissionSerializer(serializers.ModelSerializer):
    app_label = serializers.CharField(source='content_type.app_label', read_only=True)
    model = serializers.CharField(source='content_type.model', read_only=True)

    class Meta:
        model = Permission
        fields = ['id', 'name', 'codename', 'app_label', 'model']


class RoleSerializer(serializers.ModelSerializer):
    user_count = serializers.IntegerField(source='user_set.count', read_only=True)
    is_system = serializers.SerializerMethodField()

    class Meta:
        model = Group
        fields = ['id', 'name', 'user_count', 'is_system']

    def get_is_system(self, obj):
        return obj.name in ALL_ROLES

    def validate_name(self, value):
        if self.instance and self.instance.name in ALL_ROLES and value != self.instance.name:
            raise serializers.ValidationError('Built-in roles cannot be renamed.')
        return value


class RolePermissionsSerializer(serializers.Serializer):
    permissions = serializers.PrimaryKeyRelatedField(queryset=Permission.objects.all(), many=True)


class TwoFactorCodeSerializer(serializers.Serializer):
    code = serializers.RegexField(r'^\s*\d{6}\s*$', error_messages={'invalid': 'Enter the 6-digit code.'})


class TwoFactorDisableSerializer(serializers.Serializer):
    password = serializers.CharField(write_only=True)

    def validate_password(self, value):
        if not self.context['request'].user.check_password(value):
            raise serializers.ValidationError('Password is incorrect.')
        return value


class TwoFactorCredentialsSerializer(serializers.Serializer):
    """Identifies the user asking for an e-mailed code before login"""
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)
