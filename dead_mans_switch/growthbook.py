from typing import Optional

from aws_cdk import (
    aws_certificatemanager as acm,
    aws_ecs as ecs,
    aws_ecs_patterns as ecs_patterns,
    aws_elasticloadbalancingv2 as elbv2,
    aws_route53 as route53,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

from dead_mans_switch import constants


class Growthbook(Construct):
    """
    Growthbook on Fargate behind a public load balancer with HTTPS listeners
    for the UI and the API.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        hosted_zone_name: str,
        growthbook_host: str,
        email_host: str,
        email_port: str,
        email_from_address: str,
        hosted_zone_id: Optional[str] = None,
        image: str = constants.GROWTHBOOK_IMAGE,
        mongo_secret_name: str = constants.MONGO_SECRET_NAME,
        email_secret_name: str = constants.EMAIL_SECRET_NAME,
        min_capacity: int = 1,
        max_capacity: int = 5,
        target_utilization_percent: int = 50,
    ) -> None:
        super().__init__(scope, construct_id)

        if hosted_zone_id:
            hosted_zone = route53.HostedZone.from_hosted_zone_attributes(
                self, "Zone",
                hosted_zone_id=hosted_zone_id,
                zone_name=hosted_zone_name,
            )
        else:
            hosted_zone = route53.HostedZone.from_lookup(self, "Zone", domain_name=hosted_zone_name)

        self.domain_name = f"{growthbook_host}.{hosted_zone_name}"
        certificate = acm.Certificate(
            self, "GrowthbookCertificate",
            domain_name=self.domain_name,
            validation=acm.CertificateValidation.from_dns(hosted_zone),
        )

        mongo_secret = secretsmanager.Secret.from_secret_name_v2(self, "MongoSecret", mongo_secret_name)
        email_secret = secretsmanager.Secret.from_secret_name_v2(self, "EmailSecret", email_secret_name)

        self.service = ecs_patterns.ApplicationMultipleTargetGroupsFargateService(
            self, "GrowthbookService",
            cpu=512,
            memory_limit_mib=1024,
            desired_count=1,
            service_name="growthbook",
            load_balancers=[
                ecs_patterns.ApplicationLoadBalancerProps(
                    name="GrowthbookLoadBalancer",
                    domain_name=self.domain_name,
                    domain_zone=hosted_zone,
                    public_load_balancer=True,
                    listeners=[
                        ecs_patterns.ApplicationListenerProps(
                            name="growthbook-ui",
                            port=443,
                            certificate=certificate,
                            protocol=elbv2.ApplicationProtocol.HTTPS,
                            ssl_policy=elbv2.SslPolicy.FORWARD_SECRECY_TLS12_RES_GCM,
                        ),
                        ecs_patterns.ApplicationListenerProps(
                            name="growthbook-api",
                            port=constants.GROWTHBOOK_API_PORT,
                            certificate=certificate,
                            protocol=elbv2.ApplicationProtocol.HTTPS,
                            ssl_policy=elbv2.SslPolicy.FORWARD_SECRECY_TLS12_RES_GCM,
                        ),
                    ],
                )
            ],
            task_image_options=ecs_patterns.ApplicationLoadBalancedTaskImageProps(
                image=ecs.ContainerImage.from_registry(image),
                container_ports=[constants.GROWTHBOOK_UI_PORT, constants.GROWTHBOOK_API_PORT],
                environment={
                    "APP_ORIGIN": f"https://{self.domain_name}",
                    "API_HOST": f"https://{self.domain_name}:{constants.GROWTHBOOK_API_PORT}",
                    "NODE_ENV": "production",
                    "EMAIL_ENABLED": "true",
                    "EMAIL_HOST": email_host,
                    "EMAIL_PORT": email_port,
                    "EMAIL_FROM": email_from_address,
                },
                secrets={
                    "MONGODB_URI": ecs.Secret.from_secrets_manager(mongo_secret, "MONGODB_URI"),
                    "JWT_SECRET": ecs.Secret.from_secrets_manager(mongo_secret, "JWT_SECRET"),
                    "ENCRYPTION_KEY": ecs.Secret.from_secrets_manager(mongo_secret, "ENCRYPTION_KEY"),
                    "EMAIL_HOST_USER": ecs.Secret.from_secrets_manager(email_secret, "USER"),
                    "EMAIL_HOST_PASSWORD": ecs.Secret.from_secrets_manager(email_secret, "PASSWORD"),
                },
            ),
            target_groups=[
                ecs_patterns.ApplicationTargetProps(
                    container_port=constants.GROWTHBOOK_UI_PORT,
                    listener="growthbook-ui",
                ),
                ecs_patterns.ApplicationTargetProps(
                    container_port=constants.GROWTHBOOK_API_PORT,
                    listener="growthbook-api",
                ),
            ],
        )

        scalable_target = self.service.service.auto_scale_task_count(
            min_capacity=min_capacity,
            max_capacity=max_capacity,
        )
        scalable_target.scale_on_cpu_utilization(
            "CpuScaling",
            target_utilization_percent=target_utilization_percent,
        )
        scalable_target.scale_on_memory_utilization(
            "MemoryScaling",
            target_utilization_percent=target_utilization_percent,
        )
